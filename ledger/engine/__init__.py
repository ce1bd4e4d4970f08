"""
Ledger Engine Package

Pure functions over LedgerDocument. Nothing in here reads the clock,
touches storage or keeps state between calls.
"""

from ledger.engine.installments import installment_info, installment_window
from ledger.engine.mutations import (
    add_expense,
    delete_future_occurrences,
    delete_occurrence,
    delete_vault_item,
    edit_expense,
    ensure_month_populated,
    expense_target_month,
    find_vault_item,
    missing_occurrences,
    set_balance,
    toggle_paid,
    upsert_vault_item,
)
from ledger.engine.propagation import (
    LOOKBACK_MONTHS,
    find_ancestor_month,
    recurs_into,
    resolve_recurring,
)

__all__ = [
    "LOOKBACK_MONTHS",
    "add_expense",
    "delete_future_occurrences",
    "delete_occurrence",
    "delete_vault_item",
    "edit_expense",
    "ensure_month_populated",
    "expense_target_month",
    "find_ancestor_month",
    "find_vault_item",
    "installment_info",
    "installment_window",
    "missing_occurrences",
    "recurs_into",
    "resolve_recurring",
    "set_balance",
    "toggle_paid",
    "upsert_vault_item",
]
