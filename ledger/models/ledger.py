"""
Core Data Models for Household Ledger

These models define the schemas for the persisted ledger document and
the values derived from it. They are designed to:
1. Be immutable (every mutation produces a new document)
2. Round-trip through the camelCase wire format unchanged
3. Tolerate what a user may have typed (dates are kept as entered)

DESIGN DECISION: Recurrence is not a rule object. A recurring expense is
copied into every month bucket it appears in, under a shared id. The month
bucket is the only record that "this expense exists in this month".
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    StringConstraints,
)
from pydantic.alias_generators import to_camel


# Amounts are exact decimals in memory and plain JSON numbers on the wire.
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]

MonthKey = Annotated[
    str,
    StringConstraints(pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
]


def _new_id() -> str:
    return uuid4().hex


# =============================================================================
# ENUMS
# =============================================================================

class MonthStatus(str, Enum):
    """
    Settlement status of a past month.

    Only past months with at least one expense have a status.
    """
    PAID = "paid"
    UNPAID = "unpaid"


# =============================================================================
# CORE LEDGER MODELS
# =============================================================================

class Expense(BaseModel):
    """
    One financial obligation, as it appears in one month.

    The same logical recurring expense has one copy per month, all sharing
    the same `id`. Each copy owns its `paid` flag.

    `start` / `end` are day-precision strings as entered (YYYY-MM-DD or
    DD/MM/YYYY). They are not parsed here: an unparseable date only disables
    the installment, it does not make the document unreadable.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )

    id: str = Field(
        default_factory=_new_id,
        min_length=1,
        description="Shared by every month-copy of the same recurring expense"
    )
    name: str = Field(
        ...,
        max_length=200,
        description="What the expense is for"
    )
    amount: Money = Field(
        ...,
        ge=0,
        description="Amount due in the month"
    )
    is_fixed: bool = Field(
        default=False,
        description="Recurs into every later month, no end date"
    )
    is_installment: bool = Field(
        default=False,
        description="Recurs only between start and end"
    )
    start: Optional[str] = Field(
        default=None,
        description="First day of the installment plan"
    )
    end: Optional[str] = Field(
        default=None,
        description="Last day of the installment plan"
    )
    paid: bool = False

    @property
    def is_recurring(self) -> bool:
        return self.is_fixed or self.is_installment


class VaultItem(BaseModel):
    """
    A savings deposit.

    Lives in the month bucket derived from its own `date` and never moves,
    not even when edited.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )

    id: str = Field(default_factory=_new_id, min_length=1)
    amount: Money = Field(..., ge=0)
    description: str = Field(..., max_length=200)
    date: datetime.date = Field(
        default_factory=datetime.date.today,
        description="Deposit day; decides the month bucket"
    )


class LedgerDocument(BaseModel):
    """
    The full persisted state.

    CRITICAL: Treated as an immutable value per generation. The engine never
    mutates a document in place; it builds new mappings and returns a new
    document, so anyone holding an older snapshot keeps a consistent view.

    `deleted_occurrences` holds tombstones: ids whose automatic recurrence
    into that specific month is suppressed.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    account_balance: Money = Field(
        default=Decimal("0"),
        allow_inf_nan=False,
        description="User-set balance, not month scoped"
    )
    expenses_by_month: dict[MonthKey, tuple[Expense, ...]] = Field(
        default_factory=dict
    )
    vault_by_month: dict[MonthKey, tuple[VaultItem, ...]] = Field(
        default_factory=dict
    )
    deleted_occurrences: dict[MonthKey, tuple[str, ...]] = Field(
        default_factory=dict
    )

    @classmethod
    def empty(cls) -> "LedgerDocument":
        """A fresh document: zero balance, all maps empty."""
        return cls()

    def expenses_for(self, month: str) -> tuple[Expense, ...]:
        return self.expenses_by_month.get(month, ())

    def vault_for(self, month: str) -> tuple[VaultItem, ...]:
        return self.vault_by_month.get(month, ())

    def tombstones_for(self, month: str) -> frozenset[str]:
        return frozenset(self.deleted_occurrences.get(month, ()))

    def to_wire_json(self) -> str:
        """Serialize using the camelCase wire names."""
        return self.model_dump_json(by_alias=True)


# =============================================================================
# DERIVED VIEW MODELS
# =============================================================================

class InstallmentInfo(BaseModel):
    """Position of a month within an installment plan ("2 of 6")."""
    model_config = ConfigDict(frozen=True)

    ordinal: int = Field(..., ge=1)
    total: int = Field(..., ge=1)

    @property
    def label(self) -> str:
        return f"{self.ordinal}/{self.total}"


class ExpenseLine(BaseModel):
    """An expense as displayed in a month, with its installment position."""
    model_config = ConfigDict(frozen=True)

    expense: Expense
    installment: Optional[InstallmentInfo] = None


class MonthView(BaseModel):
    """
    Everything needed to display one month.

    Built after the month has been populated with its recurring expenses.
    """
    model_config = ConfigDict(frozen=True)

    month: str
    is_past: bool
    lines: list[ExpenseLine] = Field(default_factory=list)
    account_balance: Decimal
    total: Decimal
    final_balance: Decimal
    status: Optional[MonthStatus] = None


class VaultMonthTotal(BaseModel):
    """One point of the vault savings series."""
    model_config = ConfigDict(frozen=True)

    month: str
    total: Decimal


class VaultSummary(BaseModel):
    """Savings vault as displayed for one month."""
    model_config = ConfigDict(frozen=True)

    month: str
    grand_total: Decimal
    items: list[VaultItem] = Field(default_factory=list)
    series: list[VaultMonthTotal] = Field(default_factory=list)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a user intent."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'invalid_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one intent before it is applied."""

    intent: str = Field(
        ...,
        description="Name of the intent being validated"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def is_valid(self) -> bool:
        return not self.has_errors
