"""Derived aggregates package."""

from ledger.queries.aggregates import (
    build_month_view,
    build_vault_summary,
    final_balance,
    month_status,
    month_total,
    vault_grand_total,
    vault_month_total,
    vault_monthly_series,
)

__all__ = [
    "build_month_view",
    "build_vault_summary",
    "final_balance",
    "month_status",
    "month_total",
    "vault_grand_total",
    "vault_month_total",
    "vault_monthly_series",
]
