"""
Tests for Household Ledger models

Test strategy:
1. Unit tests for models, the intent validator and the audit builder
2. Settings are read from a monkeypatched environment
3. No real API calls in tests (use mocks)
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from ledger.config import get_settings, validate_all_settings
from ledger.config.settings import GoogleSheetsSettings, LedgerSettings
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger.models.ledger import (
    Expense,
    InstallmentInfo,
    LedgerDocument,
    ValidationIssue,
    ValidationResult,
    VaultItem,
)
from ledger.audit import AuditLogger
from ledger.validation import IntentRejectedError, IntentValidator, to_money


class TestLedgerModels:
    """Tests for ledger Pydantic models."""

    def test_expense_defaults(self):
        """Test a plain expense is one-off and unpaid with a generated id."""
        expense = Expense(name="Groceries", amount=Decimal("80"))
        assert expense.id
        assert expense.paid is False
        assert expense.is_recurring is False

    def test_expense_ids_are_unique(self):
        """Test two expenses never share a generated id."""
        assert Expense(name="A", amount=1).id != Expense(name="B", amount=1).id

    def test_expense_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        assert Expense(name="  Rent  ", amount=1).name == "Rent"

    def test_expense_accepts_wire_names(self):
        """Test camelCase keys populate the snake_case fields."""
        expense = Expense.model_validate(
            {"name": "Gym", "amount": 30, "isFixed": True, "isInstallment": False}
        )
        assert expense.is_fixed is True
        assert expense.is_recurring is True

    def test_expense_is_frozen(self):
        """Test expenses cannot be changed in place."""
        expense = Expense(name="Gym", amount=30)
        with pytest.raises(ValidationError):
            expense.amount = Decimal("40")

    def test_vault_item_defaults_to_today(self):
        """Test a deposit without a date is dated today."""
        item = VaultItem(amount=Decimal("10"), description="Coins")
        assert item.date == date.today()

    def test_document_rejects_bad_month_keys(self):
        """Test bucket keys must look like YYYY-MM."""
        with pytest.raises(ValidationError):
            LedgerDocument(expenses_by_month={"2024-1": ()})

    def test_document_rejects_infinite_balance(self):
        """Test the balance must be finite."""
        with pytest.raises(ValidationError):
            LedgerDocument(account_balance=Decimal("Infinity"))

    def test_document_accessors(self, january_doc):
        """Test the per-month helpers return empty values for unknown months."""
        assert len(january_doc.expenses_for("2024-01")) == 2
        assert january_doc.expenses_for("2030-01") == ()
        assert january_doc.vault_for("2024-01") == ()
        assert january_doc.tombstones_for("2024-01") == frozenset()

    def test_installment_label(self):
        """Test the "ordinal/total" label."""
        assert InstallmentInfo(ordinal=2, total=6).label == "2/6"


class TestValidationModels:
    """Tests for validation result models."""

    def test_validation_result_no_issues(self):
        """Test ValidationResult with no issues."""
        result = ValidationResult(intent="add_expense")
        assert result.is_valid
        assert not result.has_errors
        assert result.error_count == 0

    def test_warnings_do_not_fail(self):
        """Test a warning alone keeps the result valid."""
        result = ValidationResult(
            intent="add_expense",
            issues=[ValidationIssue(
                field="is_fixed",
                issue_type="conflicting_flags",
                message="Both flags set",
                severity="warning",
            )],
        )
        assert result.is_valid
        assert result.error_count == 0

    def test_unknown_severity_is_refused(self):
        """Test severity is limited to error and warning."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestIntentValidator:
    """Tests for the intent validator."""

    @pytest.fixture
    def validator(self):
        return IntentValidator()

    def test_valid_installment(self, validator, laptop):
        """Test a well-formed installment passes."""
        assert validator.validate_expense(laptop).is_valid

    def test_both_flags_is_a_warning(self, validator):
        """Test fixed plus installment is allowed but flagged."""
        expense = Expense(
            name="Odd",
            amount=10,
            is_fixed=True,
            is_installment=True,
            start="2024-01-01",
            end="2024-02-01",
        )
        result = validator.validate_expense(expense)
        assert result.is_valid
        assert [issue.issue_type for issue in result.issues] == ["conflicting_flags"]

    def test_reports_every_issue(self, validator):
        """Test all problems are reported at once."""
        expense = Expense(name="", amount=0, is_installment=True)
        result = validator.validate_expense(expense)
        assert {issue.field for issue in result.issues} == {"name", "amount", "start", "end"}

    def test_legacy_dates_are_accepted(self, validator):
        """Test DD/MM/YYYY installment dates pass."""
        expense = Expense(
            name="Phone", amount=45, is_installment=True, start="15/11/2023", end="15/04/2024"
        )
        assert validator.validate_expense(expense).is_valid

    def test_ensure_valid_raises_with_result(self, validator):
        """Test the raised error carries the full result."""
        result = validator.validate_vault_item(VaultItem(amount=0, description="Coins"))
        with pytest.raises(IntentRejectedError) as exc_info:
            IntentValidator.ensure_valid(result)
        assert exc_info.value.result is result
        assert "greater than zero" in str(exc_info.value)

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("12.30", Decimal("12.30")),
            (7, Decimal("7")),
            (0.1, Decimal("0.1")),
            (Decimal("-3"), Decimal("-3")),
        ],
    )
    def test_to_money(self, value, expected):
        """Test user input is converted to an exact Decimal."""
        assert to_money(value) == expected

    def test_to_money_rejects_nan(self):
        """Test NaN is not money."""
        with pytest.raises(IntentRejectedError):
            to_money("NaN")


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.BALANCE_SET,
            description="Account balance updated",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test AuditEvent conversion to log dict."""
        event = AuditEventBuilder.paid_toggled("rent", "2024-01", True)
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "paid_toggled"
        assert log_dict["entity_id"] == "rent"
        assert log_dict["month"] == "2024-01"
        assert log_dict["details"] == {"paid": True}
        assert log_dict["is_user_action"] is True

    def test_guard_events_are_warnings(self):
        """Test refused intents are logged at warning level."""
        guard = AuditEventBuilder.past_month_guard("toggle_paid", "rent", "2023-12")
        rejected = AuditEventBuilder.intent_rejected("add_expense", [])
        assert guard.severity == AuditSeverity.WARNING
        assert rejected.severity == AuditSeverity.WARNING

    def test_save_failure_is_an_error(self):
        """Test failed saves are logged at error level."""
        event = AuditEventBuilder.save_failed("disk full")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"


class TestAuditLogger:
    """Tests for the audit logger's in-memory history."""

    def test_history_is_bounded(self):
        """Test only the most recent events are kept."""
        audit = AuditLogger(keep_history=2)
        for month in ("2024-01", "2024-02", "2024-03"):
            assert audit.log(AuditEventBuilder.month_populated(month, []))
        assert [event.month for event in audit.history] == ["2024-02", "2024-03"]

    def test_events_of_type(self):
        """Test filtering the history by event type."""
        audit = AuditLogger()
        audit.log(AuditEventBuilder.balance_set("10"))
        audit.log(AuditEventBuilder.vault_item_deleted("v1"))
        assert len(audit.events_of_type("balance_set")) == 1
        assert audit.last_event().entity_id == "v1"

    def test_empty_history(self):
        """Test a fresh logger has no last event."""
        assert AuditLogger().last_event() is None


class TestSettings:
    """Tests for environment-driven settings."""

    @pytest.fixture(autouse=True)
    def fresh_settings(self):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_defaults(self, monkeypatch):
        """Test the JSON backend is the default."""
        monkeypatch.delenv("LEDGER_STORAGE_BACKEND", raising=False)
        settings = LedgerSettings(_env_file=None)
        assert settings.storage_backend == "json"
        assert settings.lookback_months == 24
        assert settings.vault_chart_months == 6

    def test_environment_overrides(self, monkeypatch):
        """Test LEDGER_ variables are read."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("LEDGER_LOOKBACK_MONTHS", "12")
        settings = get_settings().ledger
        assert settings.storage_backend == "memory"
        assert settings.lookback_months == 12

    def test_unknown_backend_is_refused(self, monkeypatch):
        """Test the backend name is validated."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "floppy")
        with pytest.raises(ValidationError):
            LedgerSettings(_env_file=None)

    def test_sheets_settings_warn_on_missing_credentials(self, tmp_path):
        """Test a missing credentials file warns instead of failing."""
        with pytest.warns(UserWarning):
            sheets = GoogleSheetsSettings(
                _env_file=None,
                credentials_path=str(tmp_path / "missing.json"),
                spreadsheet_id="sheet-id",
            )
        assert sheets.document_cell == "A1"

    def test_validate_all_skips_sheets_for_json(self, monkeypatch):
        """Test Google settings are only checked when selected."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "json")
        results = validate_all_settings()
        assert results["ledger"] is True
        assert "google_sheets" not in results

    def test_validate_all_reports_missing_sheets_config(self, monkeypatch):
        """Test the sheets backend without credentials is reported."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "sheets")
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        results = validate_all_settings()
        assert results["google_sheets"] is False
