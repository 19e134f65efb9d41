"""
Tests for Household Ledger models

Test strategy:
1. Unit tests for individual components (models, validators, engine)
2. Flow tests against in-memory storage
3. No real API calls in tests (fake worksheets stand in for Google Sheets)
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from household_ledger.audit import resolve_log_level
from household_ledger.config import AppSettings, get_settings, validate_all_settings
from household_ledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BalanceMatrix,
    Contribution,
    DebtRow,
    Expense,
    NewPayment,
    NewResident,
    Payment,
    PaymentAllocation,
    Resident,
    ValidationIssue,
    ValidationResult,
    collection_of,
)
from household_ledger.models.events import Collection


class TestRecordModels:
    """Tests for the stored household records."""

    def test_resident_strips_whitespace(self):
        """Test that whitespace is stripped from nicknames."""
        resident = Resident(id=1, nickname="  Alice  ")
        assert resident.nickname == "Alice"

    def test_resident_rejects_empty_nickname(self):
        with pytest.raises(ValueError):
            Resident(id=1, nickname="   ")

    def test_expense_rejects_negative_price(self):
        """Test that negative prices are rejected."""
        with pytest.raises(ValueError):
            Expense(id=1, item="Rice", price=Decimal("-1"), care_of=1)

    def test_records_are_frozen(self):
        payment = Payment(id=1, paid_by=2, received_by=1, amount=Decimal("10"))
        with pytest.raises(ValidationError):
            payment.amount = Decimal("20")

    def test_keys(self):
        assert Resident(id=4, nickname="Dina").key == 4
        assert Contribution(expense_id=2, resident_id=3).key == (2, 3)
        assert PaymentAllocation(payment_id=5, expense_id=2).key == (5, 2)

    def test_new_resident_normalized_nickname(self):
        assert NewResident(nickname=" Alice ").normalized_nickname == "alice"

    def test_new_payment_dedupes_expenses(self):
        draft = NewPayment(paid_by=1, received_by=2, amount=Decimal("5"), expense_ids=[3, 1, 3])
        assert draft.expense_ids == [3, 1]

    def test_collection_of(self):
        assert collection_of(Payment(id=1, paid_by=1, received_by=2, amount=Decimal("1"))) == (
            Collection.PAYMENTS
        )
        with pytest.raises(TypeError):
            collection_of("not a record")


class TestBalanceMatrix:
    """Tests for the balance matrix value type."""

    @pytest.fixture
    def matrix(self):
        return BalanceMatrix({
            (2, 1): Decimal("100.00"),
            (1, 2): Decimal("-100.00"),
            (3, 1): Decimal("25.50"),
            (1, 3): Decimal("-25.50"),
        })

    def test_lookup_and_default_balance(self, matrix):
        assert matrix[(2, 1)] == Decimal("100.00")
        assert matrix.balance(2, 1) == Decimal("100.00")
        assert matrix.balance(2, 3) == Decimal("0")
        with pytest.raises(KeyError):
            matrix[(2, 3)]

    def test_rows(self, matrix):
        assert matrix.row(1) == {2: Decimal("-100.00"), 3: Decimal("-25.50")}
        assert set(matrix.rows()) == {1, 2, 3}
        assert matrix.residents_involved() == {1, 2, 3}

    def test_equality_and_hash(self, matrix):
        same = BalanceMatrix(dict(matrix.items()))
        assert same == matrix
        assert hash(same) == hash(matrix)
        assert BalanceMatrix() != matrix

    def test_to_dict(self, matrix):
        assert matrix.to_dict()["2"] == {"1": "100.00"}

    def test_empty_matrix_is_settled(self):
        assert BalanceMatrix().is_settled
        assert len(BalanceMatrix()) == 0

    def test_debt_row_requires_positive_amount(self):
        with pytest.raises(ValueError):
            DebtRow(debtor_id=1, creditor_id=2, amount=Decimal("0"))


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RESIDENT_ADDED,
            description="Resident added",
        )
        assert event.event_type == AuditEventType.RESIDENT_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.expense_added(
            expense_id=3,
            item="Rice",
            price=Decimal("55.50"),
            care_of=1,
            contributor_ids=[1, 2],
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "expense_added"
        assert log_dict["details"]["price"] == "55.50"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.payment_added(
            payment_id=7,
            paid_by=2,
            received_by=1,
            amount=Decimal("100"),
            expense_ids=[1],
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "payment_added"  # event_type
        assert row[5] == "7"  # entity_id
        assert row[10] == "True"  # is_user_action

    def test_contribution_changed_direction(self):
        added = AuditEventBuilder.contribution_changed(expense_id=1, resident_id=2, added=True)
        removed = AuditEventBuilder.contribution_changed(expense_id=1, resident_id=2, added=False)

        assert added.event_type == AuditEventType.CONTRIBUTION_ADDED
        assert removed.event_type == AuditEventType.CONTRIBUTION_REMOVED
        assert removed.entity_id == 1

    def test_write_failed_is_an_error(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.write_failed(
            "payment", "remove", "timeout", entity_id=4, correlation_id=correlation_id,
        )

        assert event.severity == AuditSeverity.ERROR
        assert event.correlation_id == correlation_id
        assert event.is_user_action is False

    def test_validation_failed_counts_issues(self):
        event = AuditEventBuilder.validation_failed(
            subject="resident",
            issues=[{"field": "nickname", "type": "duplicate", "message": "taken"}],
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.description == "Resident rejected with 1 issues"


class TestSettings:
    """Tests for configuration loading."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LEDGER_CURRENCY_SYMBOL", raising=False)
        settings = get_settings()
        assert settings.ledger.currency_code == "PHP"
        assert settings.ledger.currency_symbol == "₱"
        assert settings.app.max_nickname_length == 50

    def test_missing_sheets_config_is_reported(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        results = validate_all_settings()

        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["ledger"] is True
        assert results["app"] is True

    def test_debug_mode_forces_debug_logging(self, monkeypatch):
        monkeypatch.delenv("DEBUG_MODE", raising=False)
        assert resolve_log_level(AppSettings(debug_mode=True, log_level="WARNING")) == "DEBUG"
        assert resolve_log_level(AppSettings(log_level="WARNING")) == "WARNING"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            subject="expense",
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="price",
                    issue_type="invalid_value",
                    message="Price must be greater than zero",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            subject="payment",
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="expense_ids",
                    issue_type="missing",
                    message="Payment is not linked to any expense",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.warnings == ["Payment is not linked to any expense"]

    def test_severity_is_restricted(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
