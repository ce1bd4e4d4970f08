"""
Propagation resolver.

Decides which expenses of earlier months reappear in a month that is being
viewed. Only the nearest earlier month that has expenses is consulted: once
a recurring expense has been carried into a month, that month becomes the
ancestor for the next one, so the chain is followed one link at a time.

The resolver does not merge anything. Filtering out ids already present and
ids the user deleted (tombstones) is the mutation engine's job.
"""

from collections.abc import Mapping, Sequence
from typing import Optional

from ledger.dates import month_start, shift_month
from ledger.engine.installments import installment_window
from ledger.models.ledger import Expense

# Months searched backwards for an ancestor.
LOOKBACK_MONTHS = 24


def find_ancestor_month(
    target_month: str,
    expenses_by_month: Mapping[str, Sequence[Expense]],
    lookback: int = LOOKBACK_MONTHS,
) -> Optional[str]:
    """Nearest month before `target_month` with a non-empty bucket, within `lookback` months."""
    candidate = target_month
    for _ in range(lookback):
        candidate = shift_month(candidate, -1)
        if expenses_by_month.get(candidate):
            return candidate
    return None


def recurs_into(expense: Expense, target_month: str) -> bool:
    """Whether `expense`, seen in an earlier month, carries into `target_month`."""
    if expense.is_fixed:
        return True
    if expense.is_installment:
        window = installment_window(expense)
        if window is None:
            return False
        start, end = window
        # end is inclusive for the whole day
        return start <= month_start(target_month) <= end
    return False


def resolve_recurring(
    target_month: str,
    expenses_by_month: Mapping[str, Sequence[Expense]],
    lookback: int = LOOKBACK_MONTHS,
) -> list[Expense]:
    """
    Recurring expenses that belong in `target_month`, in ancestor order.

    Returned values are fresh copies that start unpaid: each month owns its
    own paid flag.
    """
    ancestor = find_ancestor_month(target_month, expenses_by_month, lookback)
    if ancestor is None:
        return []

    return [
        expense.model_copy(update={"paid": False})
        for expense in expenses_by_month[ancestor]
        if recurs_into(expense, target_month)
    ]
