"""
Installment window calculator.

An installment expense recurs only between its start and end days. Its
position in a month is counted in calendar months from the start month,
so a plan from 15/01 to 10/03 is three installments: Jan, Feb, Mar.
"""

from datetime import date
from typing import Optional

import structlog

from ledger.dates import parse_day, parse_month_key
from ledger.models.ledger import Expense, InstallmentInfo

logger = structlog.get_logger(__name__)


def _month_span(start: tuple[int, int], end: tuple[int, int]) -> int:
    """Inclusive number of calendar months from `start` to `end`."""
    return (end[0] - start[0]) * 12 + (end[1] - start[1]) + 1


def installment_window(expense: Expense) -> Optional[tuple[date, date]]:
    """
    Parsed (start, end) days of an installment expense.

    Returns None for non-installments and for installments whose dates
    cannot be parsed; the latter is logged, since the expense then silently
    stops recurring.
    """
    if not expense.is_installment:
        return None

    start = parse_day(expense.start)
    end = parse_day(expense.end)
    if start is None or end is None:
        logger.warning(
            "installment_dates_unparseable",
            expense_id=expense.id,
            start=expense.start,
            end=expense.end,
        )
        return None
    return start, end


def installment_info(expense: Expense, viewed_month: str) -> Optional[InstallmentInfo]:
    """
    Ordinal and total of `expense` in `viewed_month`, e.g. (2, 6).

    None unless the month falls inside the plan (1 <= ordinal <= total).
    """
    window = installment_window(expense)
    if window is None:
        return None
    start, end = window

    total = _month_span((start.year, start.month), (end.year, end.month))
    ordinal = _month_span((start.year, start.month), parse_month_key(viewed_month))

    if 1 <= ordinal <= total:
        return InstallmentInfo(ordinal=ordinal, total=total)
    return None
