"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger.
The persisted document and everything derived from it conform to these schemas.
"""

from ledger.models.ledger import (
    Expense,
    ExpenseLine,
    InstallmentInfo,
    LedgerDocument,
    MonthStatus,
    MonthView,
    ValidationIssue,
    ValidationResult,
    VaultItem,
    VaultMonthTotal,
    VaultSummary,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Expense",
    "ExpenseLine",
    "InstallmentInfo",
    "LedgerDocument",
    "MonthStatus",
    "MonthView",
    "ValidationIssue",
    "ValidationResult",
    "VaultItem",
    "VaultMonthTotal",
    "VaultSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
