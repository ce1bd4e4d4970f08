"""
Tests for the ledger controller.

The controller is the only stateful piece: it holds the current document,
reads the clock, saves to the store and writes the audit trail.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from ledger.models.ledger import Expense, LedgerDocument, MonthStatus, VaultItem
from ledger.orchestrator import LedgerController, create_app_components, create_store
from ledger.services.storage import (
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    StorageError,
)
from ledger.validation import IntentRejectedError


class FailingStore(InMemoryLedgerStore):
    """A store whose saves always fail."""

    def write_blob(self, blob: str) -> None:
        raise StorageError("disk full")


@pytest.fixture
def seeded_store(january_doc) -> InMemoryLedgerStore:
    return InMemoryLedgerStore(january_doc.to_wire_json())


@pytest.fixture
def seeded_controller(seeded_store, clock) -> LedgerController:
    return LedgerController(store=seeded_store, clock=clock)


class TestLoading:
    """Tests for starting a session."""

    def test_loads_existing_document(self, seeded_controller, january_doc):
        """Test the stored document becomes the current one."""
        assert seeded_controller.document == january_doc

    def test_empty_store_gives_empty_document(self, controller):
        """Test a first run starts from nothing."""
        assert controller.document == LedgerDocument.empty()

    def test_load_is_audited(self, seeded_controller):
        """Test loading writes a document_loaded event."""
        event = seeded_controller.audit_logger.events_of_type("document_loaded")[0]
        assert event.details == {"expense_months": 1, "vault_months": 0}

    def test_damaged_document_is_audited(self, clock):
        """Test starting over from a damaged document leaves a trace."""
        controller = LedgerController(store=InMemoryLedgerStore("not json"), clock=clock)
        assert controller.document == LedgerDocument.empty()
        assert controller.audit_logger.events_of_type("document_reset")

    def test_current_month_follows_clock(self, controller, clock):
        """Test the current month is read from the injected clock."""
        assert controller.current_month() == "2024-01"
        clock.today = date(2024, 7, 31)
        assert controller.current_month() == "2024-07"


class TestOpenMonth:
    """Tests for viewing a month."""

    def test_populates_and_saves_once(self, seeded_controller, seeded_store):
        """Test opening a new month saves, opening it again does not."""
        view = seeded_controller.open_month("2024-02")
        assert [line.expense.id for line in view.lines] == ["rent"]
        assert seeded_store.write_count == 1

        seeded_controller.open_month("2024-02")
        assert seeded_store.write_count == 1

    def test_population_is_audited(self, seeded_controller):
        """Test the carried ids are recorded."""
        seeded_controller.open_month("2024-02")
        event = seeded_controller.audit_logger.events_of_type("month_populated")[0]
        assert event.month == "2024-02"
        assert event.details == {"expense_ids": ["rent"]}

    def test_defaults_to_current_month(self, seeded_controller):
        """Test no argument means the month of today."""
        view = seeded_controller.open_month()
        assert view.month == "2024-01"
        assert view.total == Decimal("1218.50")
        assert view.final_balance == Decimal("-218.50")

    def test_saved_document_is_the_populated_one(self, seeded_controller, seeded_store):
        """Test what reaches the store matches the current document."""
        seeded_controller.open_month("2024-03")
        assert seeded_store.load() == seeded_controller.document


class TestPersistence:
    """Tests for fire-and-forget saving."""

    def test_failed_save_keeps_change_in_memory(self, clock):
        """Test a save failure does not undo the intent."""
        controller = LedgerController(store=FailingStore(), clock=clock)
        doc = controller.set_balance(Decimal("42"))

        assert doc.account_balance == Decimal("42")
        assert controller.document.account_balance == Decimal("42")
        assert len(controller.audit_logger.events_of_type("save_failed")) == 1

    def test_sheets_transport_failure_is_contained(self, clock, monkeypatch):
        """Test a network failure while saving to Google Sheets stays inside the controller."""
        monkeypatch.setattr(
            GoogleSheetsLedgerStore._write_cell.retry, "sleep", lambda _: None
        )
        client = MagicMock()
        client.settings.document_cell = "A1"
        client.get_ledger_sheet.return_value.acell.return_value.value = None
        controller = LedgerController(store=GoogleSheetsLedgerStore(client=client), clock=clock)

        client.get_ledger_sheet.side_effect = requests.exceptions.ConnectionError("offline")
        doc = controller.set_balance(10)

        assert doc.account_balance == Decimal("10")
        assert controller.document is doc
        event = controller.audit_logger.events_of_type("save_failed")[0]
        assert "offline" in event.error_message

    def test_no_change_means_no_save(self, seeded_controller, seeded_store):
        """Test no-op intents do not write."""
        seeded_controller.toggle_paid("missing", "2024-01")
        seeded_controller.delete_vault_item("missing")
        assert seeded_store.write_count == 0


class TestExpenseIntents:
    """Tests for expense intents through the controller."""

    def test_add_is_saved_and_audited(self, controller, store, rent):
        """Test an added expense is persisted and recorded."""
        controller.add_expense(rent, "2024-01")

        assert store.load().expenses_for("2024-01") == (rent,)
        event = controller.audit_logger.last_event()
        assert event.event_type.value == "expense_added"
        assert event.entity_id == "rent"

    def test_installment_add_audits_its_start_month(self, controller, laptop):
        """Test the audit names the month the installment was filed in."""
        controller.add_expense(laptop, "2024-06")
        assert controller.audit_logger.last_event().month == "2024-01"

    def test_rejected_add_changes_nothing(self, seeded_controller, seeded_store):
        """Test an invalid expense is refused, audited and not saved."""
        before = seeded_controller.document
        with pytest.raises(IntentRejectedError):
            seeded_controller.add_expense(
                Expense(name="Nothing", amount=Decimal("0")), "2024-01"
            )

        assert seeded_controller.document is before
        assert seeded_store.write_count == 0
        rejected = seeded_controller.audit_logger.events_of_type("intent_rejected")
        assert rejected[0].details["issues"][0]["field"] == "amount"

    def test_rejected_edit_is_audited(self, seeded_controller):
        """Test a refused edit leaves an intent_rejected event."""
        with pytest.raises(IntentRejectedError):
            seeded_controller.edit_expense("rent", {"amount": -1}, "2024-01")
        assert seeded_controller.audit_logger.events_of_type("intent_rejected")

    def test_edit_is_audited_with_fields(self, seeded_controller):
        """Test the changed field names are recorded."""
        seeded_controller.edit_expense("rent", {"name": "Flat", "amount": 1250}, "2024-01")
        event = seeded_controller.audit_logger.events_of_type("expense_edited")[0]
        assert event.details == {"changed_fields": ["amount", "name"]}

    def test_delete_records_tombstone_flag(self, seeded_controller):
        """Test deleting a recurring expense reports its tombstone."""
        seeded_controller.delete_occurrence("rent", "2024-01")
        event = seeded_controller.audit_logger.events_of_type("occurrence_deleted")[0]
        assert event.details == {"tombstoned": True}

    def test_past_month_guard_is_audited(self, seeded_controller, seeded_store, clock):
        """Test toggling a past month is ignored and recorded."""
        clock.today = date(2024, 2, 1)
        before = seeded_controller.document

        assert seeded_controller.toggle_paid("rent", "2024-01") is before
        assert seeded_controller.delete_occurrence("rent", "2024-01") is before
        assert seeded_controller.delete_future_occurrences("rent", "2024-01") is before

        guards = seeded_controller.audit_logger.events_of_type("past_month_guard")
        assert [event.details["intent"] for event in guards] == [
            "toggle_paid",
            "delete_occurrence",
            "delete_future_occurrences",
        ]
        assert seeded_store.write_count == 0

    def test_rejected_balance_is_audited(self, controller):
        """Test a non-numeric balance is refused."""
        with pytest.raises(IntentRejectedError):
            controller.set_balance("twelve")
        assert controller.audit_logger.events_of_type("intent_rejected")


class TestVaultIntents:
    """Tests for vault intents through the controller."""

    def test_deposit_and_summary(self, controller, clock):
        """Test a deposit shows in the current month's summary."""
        controller.upsert_vault_item(
            VaultItem(id="v1", amount=Decimal("80"), description="Savings", date=clock())
        )
        summary = controller.vault_summary()

        assert summary.month == "2024-01"
        assert summary.grand_total == Decimal("80")
        assert len(summary.series) == 6
        assert summary.series[-1].total == Decimal("80")
        event = controller.audit_logger.last_event()
        assert event.event_type.value == "vault_item_saved"
        assert event.month == "2024-01"

    def test_delete_deposit(self, controller, clock):
        """Test a deleted deposit is gone and the delete is audited."""
        controller.upsert_vault_item(
            VaultItem(id="v1", amount=Decimal("80"), description="Savings", date=clock())
        )
        controller.delete_vault_item("v1")
        assert controller.document.vault_by_month == {}
        assert controller.audit_logger.last_event().event_type.value == "vault_item_deleted"


class TestScenario:
    """A few months of household use."""

    def test_rent_paid_over_three_months(self, controller, clock, rent, coffee):
        """Test recurrence, paid flags and month status as time passes."""
        controller.set_balance(Decimal("3000"))
        controller.add_expense(rent, "2024-01")
        controller.add_expense(coffee, "2024-01")
        controller.toggle_paid("rent", "2024-01")

        clock.today = date(2024, 2, 3)
        february = controller.open_month()
        assert [line.expense.id for line in february.lines] == ["rent"]
        assert february.lines[0].expense.paid is False
        controller.toggle_paid("rent", "2024-02")

        clock.today = date(2024, 3, 1)
        assert controller.open_month("2024-01").status == MonthStatus.UNPAID
        assert controller.open_month("2024-02").status == MonthStatus.PAID

        march = controller.open_month()
        assert march.status is None
        assert march.final_balance == Decimal("1800")

    def test_ending_a_fixed_expense(self, controller, rent):
        """Test delete-future stops rent from reappearing."""
        controller.add_expense(rent, "2024-01")
        controller.open_month("2024-02")
        controller.open_month("2024-03")
        controller.add_expense(
            Expense(id="paint", name="Paint", amount=Decimal("60")), "2024-03"
        )

        controller.delete_future_occurrences("rent", "2024-02")

        assert controller.open_month("2024-04").lines == []
        assert controller.document.expenses_for("2024-01") == (rent,)


class TestFactories:
    """Tests for building components from settings."""

    def test_in_memory_components(self):
        """Test a session without storage."""
        controller, store = create_app_components(use_storage=False)
        assert isinstance(store, InMemoryLedgerStore)
        assert controller.document == LedgerDocument.empty()

    def test_create_store_backends(self):
        """Test the backend names map to store classes."""
        assert isinstance(create_store("memory"), InMemoryLedgerStore)
        assert isinstance(create_store("json"), JsonFileLedgerStore)
        with pytest.raises(ValueError):
            create_store("floppy")

    def test_invalid_sheets_settings_fall_back_to_memory(self, monkeypatch):
        """Test a sheets backend without credentials runs in memory and is audited."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "sheets")
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        controller, store = create_app_components()

        assert isinstance(store, InMemoryLedgerStore)
        errors = controller.audit_logger.events_of_type("system_error")
        assert errors[0].details == {"section": "google_sheets"}

    def test_invalid_app_settings_use_defaults(self, monkeypatch):
        """Test a bad log level is audited and the session still starts."""
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "memory")

        controller, store = create_app_components()

        assert isinstance(store, InMemoryLedgerStore)
        sections = [
            event.details["section"]
            for event in controller.audit_logger.events_of_type("system_error")
        ]
        assert sections == ["app"]
