"""
Audit Models for Household Ledger

Every intent applied to the ledger is logged for audit purposes.
This provides:
1. Traceability of how the document reached its current state
2. Debugging information when propagation does something surprising
3. A record of silently rejected intents (past-month guard)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Month view
    MONTH_POPULATED = "month_populated"

    # Expense intents
    EXPENSE_ADDED = "expense_added"
    EXPENSE_EDITED = "expense_edited"
    OCCURRENCE_DELETED = "occurrence_deleted"
    FUTURE_OCCURRENCES_DELETED = "future_occurrences_deleted"
    PAID_TOGGLED = "paid_toggled"

    # Balance and vault
    BALANCE_SET = "balance_set"
    VAULT_ITEM_SAVED = "vault_item_saved"
    VAULT_ITEM_DELETED = "vault_item_deleted"

    # Refusals
    INTENT_REJECTED = "intent_rejected"
    PAST_MONTH_GUARD = "past_month_guard"

    # Persistence
    DOCUMENT_LOADED = "document_loaded"
    DOCUMENT_RESET = "document_reset"
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every applied (or refused) intent creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'vault_item', 'month')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    month: Optional[str] = Field(
        default=None,
        description="Month bucket the intent targeted"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "month": self.month,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(expense_id, name, month)
        event = AuditEventBuilder.past_month_guard("toggle_paid", expense_id, month)
    """

    @staticmethod
    def month_populated(month: str, expense_ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_POPULATED,
            entity_type="month",
            month=month,
            description=f"Carried {len(expense_ids)} recurring expenses into {month}",
            details={"expense_ids": expense_ids},
        )

    @staticmethod
    def expense_added(expense_id: str, name: str, month: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            month=month,
            description=f"Expense added: {name}",
            is_user_action=True,
        )

    @staticmethod
    def expense_edited(expense_id: str, changed_fields: list[str], month: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_EDITED,
            entity_type="expense",
            entity_id=expense_id,
            month=month,
            description=f"Expense edited in {month}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def occurrence_deleted(expense_id: str, month: str, tombstoned: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            month=month,
            description=f"Expense removed from {month}",
            details={"tombstoned": tombstoned},
            is_user_action=True,
        )

    @staticmethod
    def future_occurrences_deleted(expense_id: str, from_month: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FUTURE_OCCURRENCES_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            month=from_month,
            description=f"Expense removed from {from_month} onward",
            is_user_action=True,
        )

    @staticmethod
    def paid_toggled(expense_id: str, month: str, paid: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAID_TOGGLED,
            entity_type="expense",
            entity_id=expense_id,
            month=month,
            description=f"Expense marked {'paid' if paid else 'unpaid'}",
            details={"paid": paid},
            is_user_action=True,
        )

    @staticmethod
    def balance_set(amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_SET,
            entity_type="account",
            description="Account balance updated",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def vault_item_saved(item_id: str, month: str, amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VAULT_ITEM_SAVED,
            entity_type="vault_item",
            entity_id=item_id,
            month=month,
            description=f"Vault deposit saved in {month}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def vault_item_deleted(item_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VAULT_ITEM_DELETED,
            entity_type="vault_item",
            entity_id=item_id,
            description="Vault deposit deleted",
            is_user_action=True,
        )

    @staticmethod
    def intent_rejected(intent: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTENT_REJECTED,
            severity=AuditSeverity.WARNING,
            description=f"{intent} rejected with {len(issues)} issues",
            details={"intent": intent, "issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def past_month_guard(intent: str, entity_id: str, month: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAST_MONTH_GUARD,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=entity_id,
            month=month,
            description=f"{intent} ignored: {month} is a past month",
            details={"intent": intent},
            is_user_action=True,
        )

    @staticmethod
    def document_loaded(expense_months: int, vault_months: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_LOADED,
            entity_type="document",
            description="Ledger document loaded",
            details={
                "expense_months": expense_months,
                "vault_months": vault_months,
            },
        )

    @staticmethod
    def document_reset() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="document",
            description="Stored ledger document was unreadable; started from an empty one",
        )

    @staticmethod
    def save_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="document",
            description="Ledger document could not be saved",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
