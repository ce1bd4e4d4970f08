"""
Main Orchestrator for Household Ledger

This module owns the current ledger document and threads it through the
pure engine functions. It is the only place that:
1. Reads the clock (to know which month is "current")
2. Talks to the store
3. Writes audit events

DESIGN DECISION: Persistence is fire-and-forget. The controller computes the
new document, makes it current, then asks the store to save it. A failed
save is logged and audited but does not undo the change in memory; the next
successful save writes the whole document again anyway.

Intents are applied one at a time in the order they are issued, each one
reading the document the previous one produced.
"""

from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union

import structlog

from ledger.audit import AuditLogger, configure_logging
from ledger.config import (
    AppSettings,
    LedgerSettings,
    get_settings,
    validate_all_settings,
)
from ledger.dates import is_past_month, month_key
from ledger.engine import (
    LOOKBACK_MONTHS,
    add_expense,
    delete_future_occurrences,
    delete_occurrence,
    delete_vault_item,
    edit_expense,
    ensure_month_populated,
    expense_target_month,
    find_vault_item,
    set_balance,
    toggle_paid,
    upsert_vault_item,
)
from ledger.models.audit import AuditEvent, AuditEventBuilder
from ledger.models.ledger import (
    Expense,
    LedgerDocument,
    MonthView,
    VaultItem,
    VaultSummary,
)
from ledger.queries import build_month_view, build_vault_summary
from ledger.services.storage import (
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    LedgerStoreInterface,
    StorageError,
)
from ledger.validation import IntentRejectedError

logger = structlog.get_logger(__name__)


class LedgerController:
    """
    Owns the ledger document for one user session.

    Every public method either reads the current document or replaces it
    with the next one. Documents are never modified in place, so a
    `document` obtained earlier stays a consistent snapshot.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], date] = date.today,
        lookback_months: int = LOOKBACK_MONTHS,
        vault_chart_months: int = 6,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock
        self._lookback = lookback_months
        self._vault_chart_months = vault_chart_months

        self._document = store.load()
        if store.recovered:
            self._audit(AuditEventBuilder.document_reset())
        self._audit(AuditEventBuilder.document_loaded(
            expense_months=len(self._document.expenses_by_month),
            vault_months=len(self._document.vault_by_month),
        ))

    @property
    def document(self) -> LedgerDocument:
        return self._document

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    def current_month(self) -> str:
        return month_key(self._clock())

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _audit(self, event: AuditEvent) -> None:
        self._audit_logger.log(event)

    def _commit(self, new_document: LedgerDocument) -> bool:
        """
        Make `new_document` current and persist it.

        Returns False when the intent changed nothing (no save happens).
        """
        if new_document is self._document:
            return False

        self._document = new_document
        try:
            self._store.save(new_document)
        except StorageError as e:
            logger.error("ledger_save_failed", error=str(e))
            self._audit(AuditEventBuilder.save_failed(str(e)))
        return True

    def _rejected(self, intent: str, error: IntentRejectedError) -> None:
        self._audit(AuditEventBuilder.intent_rejected(
            intent,
            [issue.model_dump() for issue in error.result.issues],
        ))

    def _guarded(self, intent: str, entity_id: str, month: str) -> bool:
        """Audit and report True when `month` is closed to deletes and toggles."""
        if is_past_month(month, self.current_month()):
            self._audit(AuditEventBuilder.past_month_guard(intent, entity_id, month))
            return True
        return False

    # -------------------------------------------------------------------------
    # Month view
    # -------------------------------------------------------------------------

    def open_month(self, month: Optional[str] = None) -> MonthView:
        """
        Populate `month` with its recurring expenses and return its view.

        Defaults to the current month.
        """
        month = month or self.current_month()
        before = {expense.id for expense in self._document.expenses_for(month)}

        new_document = ensure_month_populated(self._document, month, self._lookback)
        if self._commit(new_document):
            added = [
                expense.id
                for expense in new_document.expenses_for(month)
                if expense.id not in before
            ]
            self._audit(AuditEventBuilder.month_populated(month, added))

        return build_month_view(self._document, month, self.current_month())

    def vault_summary(self, month: Optional[str] = None) -> VaultSummary:
        month = month or self.current_month()
        return build_vault_summary(self._document, month, self._vault_chart_months)

    # -------------------------------------------------------------------------
    # Expense intents
    # -------------------------------------------------------------------------

    def add_expense(self, expense: Expense, viewed_month: str) -> LedgerDocument:
        """
        Record a new expense.

        Raises:
            IntentRejectedError: if the expense is invalid (nothing changes)
        """
        try:
            new_document = add_expense(self._document, expense, viewed_month, self._lookback)
        except IntentRejectedError as e:
            self._rejected("add_expense", e)
            raise

        self._commit(new_document)
        self._audit(AuditEventBuilder.expense_added(
            expense.id,
            expense.name,
            expense_target_month(expense, viewed_month),
        ))
        return self._document

    def edit_expense(
        self,
        expense_id: str,
        changes: Mapping[str, Any],
        viewed_month: str,
    ) -> LedgerDocument:
        """
        Edit the occurrence of `expense_id` in `viewed_month`.

        Raises:
            IntentRejectedError: if the edited expense is invalid
        """
        try:
            new_document = edit_expense(self._document, expense_id, changes, viewed_month)
        except IntentRejectedError as e:
            self._rejected("edit_expense", e)
            raise

        if self._commit(new_document):
            self._audit(AuditEventBuilder.expense_edited(
                expense_id, sorted(changes), viewed_month
            ))
        return self._document

    def delete_occurrence(self, expense_id: str, month: str) -> LedgerDocument:
        if self._guarded("delete_occurrence", expense_id, month):
            return self._document

        new_document = delete_occurrence(self._document, expense_id, month, self.current_month())
        if self._commit(new_document):
            tombstoned = expense_id in self._document.tombstones_for(month)
            self._audit(AuditEventBuilder.occurrence_deleted(expense_id, month, tombstoned))
        return self._document

    def delete_future_occurrences(self, expense_id: str, from_month: str) -> LedgerDocument:
        if self._guarded("delete_future_occurrences", expense_id, from_month):
            return self._document

        new_document = delete_future_occurrences(
            self._document, expense_id, from_month, self.current_month()
        )
        if self._commit(new_document):
            self._audit(AuditEventBuilder.future_occurrences_deleted(expense_id, from_month))
        return self._document

    def toggle_paid(self, expense_id: str, month: str) -> LedgerDocument:
        if self._guarded("toggle_paid", expense_id, month):
            return self._document

        new_document = toggle_paid(self._document, expense_id, month, self.current_month())
        if self._commit(new_document):
            paid = next(
                e.paid for e in new_document.expenses_for(month) if e.id == expense_id
            )
            self._audit(AuditEventBuilder.paid_toggled(expense_id, month, paid))
        return self._document

    # -------------------------------------------------------------------------
    # Balance and vault intents
    # -------------------------------------------------------------------------

    def set_balance(self, amount: Union[Decimal, int, float, str]) -> LedgerDocument:
        """
        Raises:
            IntentRejectedError: if `amount` is not a finite number
        """
        try:
            new_document = set_balance(self._document, amount)
        except IntentRejectedError as e:
            self._rejected("set_balance", e)
            raise

        self._commit(new_document)
        self._audit(AuditEventBuilder.balance_set(str(new_document.account_balance)))
        return self._document

    def upsert_vault_item(self, item: VaultItem) -> LedgerDocument:
        """
        Raises:
            IntentRejectedError: if the deposit is invalid
        """
        try:
            new_document = upsert_vault_item(self._document, item)
        except IntentRejectedError as e:
            self._rejected("upsert_vault_item", e)
            raise

        self._commit(new_document)
        month, stored = find_vault_item(self._document, item.id)
        self._audit(AuditEventBuilder.vault_item_saved(stored.id, month, str(stored.amount)))
        return self._document

    def delete_vault_item(self, item_id: str) -> LedgerDocument:
        if self._commit(delete_vault_item(self._document, item_id)):
            self._audit(AuditEventBuilder.vault_item_deleted(item_id))
        return self._document


def create_store(backend: Optional[str] = None) -> LedgerStoreInterface:
    """
    Build the configured ledger store.

    Args:
        backend: Override the configured backend ('memory', 'json' or 'sheets')
    """
    ledger_settings = get_settings().ledger
    backend = backend or ledger_settings.storage_backend

    if backend == "memory":
        return InMemoryLedgerStore()
    if backend == "json":
        return JsonFileLedgerStore(ledger_settings.data_file)
    if backend == "sheets":
        return GoogleSheetsLedgerStore()
    raise ValueError(f"Unknown storage backend: {backend}")


def create_app_components(
    use_storage: bool = True,
    clock: Callable[[], date] = date.today,
) -> tuple[LedgerController, LedgerStoreInterface]:
    """
    Factory function to create all application components.

    Settings are validated first. A section that fails validation is
    audited and replaced by its defaults; a failed storage section means
    the session runs in memory.

    Args:
        use_storage: Whether to use the configured store.
                    Set to False for an in-memory session.
        clock: Source of "today", for the current-month guards

    Returns:
        (controller, store)
    """
    settings = get_settings()
    checks = validate_all_settings()
    invalid = {
        name: checks.get(f"{name}_error", "")
        for name, ok in checks.items()
        if ok is False
    }

    app_settings = AppSettings.model_construct() if "app" in invalid else settings.app
    ledger_settings = (
        LedgerSettings.model_construct() if "ledger" in invalid else settings.ledger
    )

    configure_logging("DEBUG" if app_settings.debug_mode else app_settings.log_level)
    audit_logger = AuditLogger()
    logger.info(
        "ledger_starting",
        environment=app_settings.app_environment,
        backend=ledger_settings.storage_backend,
    )

    for section, error in invalid.items():
        logger.warning("invalid_settings", section=section, error=error)
        audit_logger.log(AuditEventBuilder.system_error(
            "invalid_settings", error, {"section": section}
        ))

    store: LedgerStoreInterface
    if use_storage and not invalid.keys() & {"ledger", "google_sheets"}:
        try:
            store = create_store(ledger_settings.storage_backend)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            audit_logger.log(AuditEventBuilder.system_error(
                "storage_not_configured", str(e)
            ))
            store = InMemoryLedgerStore()
    else:
        store = InMemoryLedgerStore()

    controller = LedgerController(
        store=store,
        audit_logger=audit_logger,
        clock=clock,
        lookback_months=ledger_settings.lookback_months,
        vault_chart_months=ledger_settings.vault_chart_months,
    )
    return controller, store
