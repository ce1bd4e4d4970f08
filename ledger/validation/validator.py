"""
Intent Validation

DESIGN DECISION: Invalid user input is refused before the engine touches the
document. A rejected intent leaves no partial state behind; the caller gets
an IntentRejectedError listing every issue at once, so a form can show them
all together.

Persisted data is NOT validated here. A stored installment with a date the
user mistyped is still loaded; it simply stops recurring (see installments).

IMPORTANT: Validation NEVER silently fixes issues.
"""

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Union

from ledger.dates import parse_day
from ledger.models.ledger import (
    Expense,
    ValidationIssue,
    ValidationResult,
    VaultItem,
)


class IntentRejectedError(ValueError):
    """An intent failed validation and was not applied."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"{result.intent} rejected: {messages}")


def to_money(value: Union[Decimal, int, float, str], field: str = "amount") -> Decimal:
    """
    Convert user input to a finite Decimal.

    Floats go through str() so 0.1 stays 0.1.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        amount = None
    if amount is None or not amount.is_finite():
        raise IntentRejectedError(ValidationResult(
            intent=f"parse_{field}",
            issues=[ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{value!r} is not a finite number",
            )],
        ))
    return amount


class IntentValidator:
    """
    Validates user intents before they are applied.

    Stateless; one instance can be shared.
    """

    def validate_expense(
        self,
        expense: Expense,
        bucket: Iterable[Expense] = (),
        intent: str = "add_expense",
    ) -> ValidationResult:
        """
        Check an expense about to be added or saved over an existing one.

        Args:
            expense: The expense as it would be stored
            bucket: Expenses already in the target month; a clashing id is an error
            intent: Name reported in the result
        """
        issues = []

        if not expense.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Expense name is required",
            ))

        if expense.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))

        if expense.is_installment:
            issues.extend(self._validate_installment_dates(expense))
            if expense.is_fixed:
                issues.append(ValidationIssue(
                    field="is_fixed",
                    issue_type="conflicting_flags",
                    message="Expense is both fixed and installment; it will recur with no end date",
                    severity="warning",
                ))

        if any(other.id == expense.id for other in bucket):
            issues.append(ValidationIssue(
                field="id",
                issue_type="duplicate",
                message=f"An expense with id {expense.id} already exists in this month",
            ))

        return ValidationResult(intent=intent, issues=issues)

    def _validate_installment_dates(self, expense: Expense) -> list[ValidationIssue]:
        issues = []
        parsed = {}
        for field in ("start", "end"):
            raw = getattr(expense, field)
            if not raw:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"Installment {field} date is required",
                ))
                continue
            parsed[field] = parse_day(raw)
            if parsed[field] is None:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_date",
                    message=f"Installment {field} date {raw!r} is not a valid date",
                ))

        if parsed.get("start") and parsed.get("end") and parsed["start"] > parsed["end"]:
            issues.append(ValidationIssue(
                field="end",
                issue_type="invalid_range",
                message="Installment end date cannot be before start date",
            ))
        return issues

    def validate_vault_item(self, item: VaultItem) -> ValidationResult:
        issues = []
        if not item.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Deposit description is required",
            ))
        if item.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))
        return ValidationResult(intent="upsert_vault_item", issues=issues)

    @staticmethod
    def ensure_valid(result: ValidationResult) -> None:
        """Raise IntentRejectedError if `result` carries any error."""
        if result.has_errors:
            raise IntentRejectedError(result)
