"""
Derived Aggregates

DESIGN DECISION: Totals are never stored. They are recomputed from the
document every time, so there is no cached figure that can drift from the
month buckets it summarizes.

All functions are pure reducers over a LedgerDocument.
"""

from decimal import Decimal
from typing import Optional

from ledger.dates import is_past_month, months_ending_at
from ledger.engine.installments import installment_info
from ledger.models.ledger import (
    ExpenseLine,
    LedgerDocument,
    MonthStatus,
    MonthView,
    VaultMonthTotal,
    VaultSummary,
)


def month_total(doc: LedgerDocument, month: str) -> Decimal:
    """Sum of the month's expenses; zero for a month with no bucket."""
    return sum((expense.amount for expense in doc.expenses_for(month)), Decimal("0"))


def final_balance(doc: LedgerDocument, month: str) -> Decimal:
    """Account balance left after paying the month's expenses."""
    return doc.account_balance - month_total(doc, month)


def month_status(
    doc: LedgerDocument,
    month: str,
    current_month: str,
) -> Optional[MonthStatus]:
    """
    Whether a past month was fully paid.

    None for the current month, future months and past months with no
    expenses.
    """
    if not is_past_month(month, current_month):
        return None

    expenses = doc.expenses_for(month)
    if not expenses:
        return None

    if all(expense.paid for expense in expenses):
        return MonthStatus.PAID
    return MonthStatus.UNPAID


def vault_month_total(doc: LedgerDocument, month: str) -> Decimal:
    return sum((item.amount for item in doc.vault_for(month)), Decimal("0"))


def vault_grand_total(doc: LedgerDocument) -> Decimal:
    """Everything ever deposited in the vault."""
    return sum(
        (item.amount for items in doc.vault_by_month.values() for item in items),
        Decimal("0"),
    )


def vault_monthly_series(
    doc: LedgerDocument,
    month: str,
    count: int,
) -> list[VaultMonthTotal]:
    """
    Per-month vault totals for the `count` months ending at `month`.

    Always `count` points long, oldest first; empty months are zero.
    """
    return [
        VaultMonthTotal(month=key, total=vault_month_total(doc, key))
        for key in months_ending_at(month, count)
    ]


def build_month_view(
    doc: LedgerDocument,
    month: str,
    current_month: str,
) -> MonthView:
    """
    Assemble what is displayed for `month`.

    Call after the month has been populated, otherwise recurring expenses
    not yet carried over will be missing from the lines and the totals.
    """
    lines = [
        ExpenseLine(expense=expense, installment=installment_info(expense, month))
        for expense in doc.expenses_for(month)
    ]
    return MonthView(
        month=month,
        is_past=is_past_month(month, current_month),
        lines=lines,
        account_balance=doc.account_balance,
        total=month_total(doc, month),
        final_balance=final_balance(doc, month),
        status=month_status(doc, month, current_month),
    )


def build_vault_summary(
    doc: LedgerDocument,
    month: str,
    chart_months: int = 6,
) -> VaultSummary:
    return VaultSummary(
        month=month,
        grand_total=vault_grand_total(doc),
        items=list(doc.vault_for(month)),
        series=vault_monthly_series(doc, month, chart_months),
    )
