"""
Tests for CepFinans

Test strategy:
1. Unit tests for individual components (models, engine, validators)
2. Integration tests for flows (with in-memory or mocked storage)
3. No real API calls in tests (use mocks)
"""

import json
import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from cepfinans.models import (
    AccountBalances,
    AccountKind,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Frequency,
    MonthlyTotals,
    Note,
    OperationResult,
    RecurringDefinition,
    RecurringType,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)


class TestBalanceModels:
    """Tests for the account balance snapshot."""

    def test_balances_default_to_zero(self):
        """Test that a fresh snapshot holds zero everywhere."""
        balances = AccountBalances()
        assert balances.cash == Decimal("0")
        assert balances.bank == Decimal("0")
        assert balances.savings == Decimal("0")
        assert balances.total == Decimal("0")

    def test_balances_total(self):
        """Test that total adds the three accounts."""
        balances = AccountBalances(cash=Decimal("10"), bank=Decimal("20.50"), savings=Decimal("5"))
        assert balances.total == Decimal("35.50")

    def test_with_updates_returns_new_snapshot(self):
        """Test that with_updates leaves the original untouched."""
        balances = AccountBalances(cash=Decimal("100"))
        updated = balances.with_updates({AccountKind.CASH: Decimal("40")})

        assert updated.cash == Decimal("40")
        assert balances.cash == Decimal("100")

    def test_balances_are_frozen(self):
        """Test that a snapshot can't be mutated in place."""
        balances = AccountBalances()
        with pytest.raises(ValueError):
            balances.cash = Decimal("1")

    def test_get_accepts_string_account(self):
        """Test that get() accepts the account's string value."""
        balances = AccountBalances(bank=Decimal("7"))
        assert balances.get("bank") == Decimal("7")

    def test_as_dict(self):
        """Test string serialization for logs."""
        balances = AccountBalances(cash=Decimal("1.50"))
        assert balances.as_dict() == {"cash": "1.50", "bank": "0", "savings": "0"}


class TestTransactionModels:
    """Tests for transaction-related Pydantic models."""

    def test_transaction_creation(self):
        """Test Transaction model creation."""
        tx = Transaction(
            type=TransactionType.EXPENSE,
            amount=Decimal("42.10"),
            category="Market",
            account=AccountKind.CASH,
        )
        assert tx.amount == Decimal("42.10")
        assert tx.description == ""
        assert tx.is_recurring is False
        assert tx.recurring_id is None

    def test_transaction_strips_whitespace(self):
        """Test that whitespace is stripped from the category."""
        tx = Transaction(type="income", amount="10", category="  Maaş  ", account="bank")
        assert tx.category == "Maaş"

    def test_transaction_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            Transaction(type="expense", amount=Decimal("0"), category="x", account="cash")
        with pytest.raises(ValueError):
            Transaction(type="expense", amount=Decimal("-5"), category="x", account="cash")

    def test_transaction_rejects_sub_cent_amounts(self):
        """Test that amounts carry at most two decimal places."""
        with pytest.raises(ValueError):
            Transaction(type="expense", amount=Decimal("1.005"), category="x", account="cash")

    def test_transfer_requires_both_accounts(self):
        """Test that a transfer without a destination is rejected."""
        with pytest.raises(ValueError):
            Transaction(
                type=TransactionType.TRANSFER,
                amount=Decimal("10"),
                category="Transfer",
                account=AccountKind.CASH,
                transfer_from=AccountKind.CASH,
            )

    def test_transfer_rejects_same_account(self):
        """Test that a transfer to the same account is rejected."""
        with pytest.raises(ValueError):
            Transaction(
                type=TransactionType.TRANSFER,
                amount=Decimal("10"),
                category="Transfer",
                account=AccountKind.CASH,
                transfer_from=AccountKind.CASH,
                transfer_to=AccountKind.CASH,
            )

    def test_non_transfer_rejects_transfer_accounts(self):
        """Test that income can't carry transfer endpoints."""
        with pytest.raises(ValueError):
            Transaction(
                type=TransactionType.INCOME,
                amount=Decimal("10"),
                category="Maaş",
                account=AccountKind.BANK,
                transfer_to=AccountKind.CASH,
            )

    def test_transaction_day(self):
        """Test the calendar day helper."""
        tx = Transaction(
            type="income",
            amount="10",
            category="x",
            account="cash",
            date=datetime(2024, 3, 15, 18, 30),
        )
        assert tx.day == date(2024, 3, 15)


class TestRecurringModels:
    """Tests for recurring definitions."""

    def test_definition_defaults(self):
        """Test default frequency and activity."""
        definition = RecurringDefinition(
            type=RecurringType.EXPENSE,
            amount=Decimal("1500"),
            category="Kira",
            account=AccountKind.BANK,
            day_of_month=1,
        )
        assert definition.frequency == Frequency.MONTHLY
        assert definition.is_active is True
        assert definition.is_evaluated is True

    def test_definition_day_bounds(self):
        """Test that day_of_month must be within 1-31."""
        with pytest.raises(ValueError):
            RecurringDefinition(
                type="expense", amount="1", category="x", account="cash", day_of_month=32
            )
        with pytest.raises(ValueError):
            RecurringDefinition(
                type="expense", amount="1", category="x", account="cash", day_of_month=0
            )

    def test_definition_month_bounds(self):
        """Test that month_of_year must be within 1-12."""
        with pytest.raises(ValueError):
            RecurringDefinition(
                type="expense",
                amount="1",
                category="x",
                account="cash",
                frequency="yearly",
                day_of_month=1,
                month_of_year=13,
            )

    def test_definition_end_before_start(self):
        """Test that end_date before start_date is rejected."""
        with pytest.raises(ValueError):
            RecurringDefinition(
                type="income",
                amount="1",
                category="x",
                account="cash",
                day_of_month=1,
                start_date=date(2024, 5, 1),
                end_date=date(2024, 4, 1),
            )

    def test_unevaluated_frequencies(self):
        """Test that weekly definitions are stored but not evaluated."""
        definition = RecurringDefinition(
            type="expense", amount="1", category="x", account="cash", frequency="weekly"
        )
        assert definition.is_evaluated is False


class TestNoteModels:
    """Tests for notes."""

    def test_note_from_tag_string(self):
        """Test comma-separated tags are split and cleaned."""
        note = Note.from_tag_string("Fatura öde", " ev, ,fatura ")
        assert note.tags == ["ev", "fatura"]
        assert note.date == date.today()

    def test_note_requires_content(self):
        """Test that blank content is rejected."""
        with pytest.raises(ValueError):
            Note(content="   ")


class TestResultModels:
    """Tests for operation and validation results."""

    def test_operation_result_helpers(self):
        """Test ok/failure constructors."""
        entity_id = uuid4()
        assert OperationResult.ok(entity_id).success is True
        failed = OperationResult.failure("nope", entity_id=entity_id)
        assert failed.success is False
        assert failed.reason == "nope"
        assert failed.entity_id == entity_id

    def test_validation_result_has_errors(self):
        """Test has_errors, error_count and first_error."""
        result = ValidationResult(
            entity_id=uuid4(),
            schema_valid=True,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message="Too high",
                    severity="warning",
                ),
                ValidationIssue(
                    field="amount",
                    issue_type="insufficient_funds",
                    message="Not enough money",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.first_error == "Not enough money"

    def test_validation_result_warnings_only(self):
        """Test a result that only carries warnings."""
        result = ValidationResult(
            entity_id=uuid4(),
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            warnings=["Check the date"],
        )
        assert result.has_errors is False
        assert result.first_error is None

    def test_monthly_totals(self):
        """Test net and label."""
        totals = MonthlyTotals(year=2024, month=3, income=Decimal("100"), expense=Decimal("30"))
        assert totals.net == Decimal("70")
        assert totals.label == "2024-03"


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            description="Income recorded",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.is_user_action is False

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a spreadsheet row."""
        event = AuditEvent(
            event_type=AuditEventType.BALANCES_UPDATED,
            description="Account balances updated",
            details={"current": {"cash": "1"}},
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "balances_updated"
        assert json.loads(row[8]) == {"current": {"cash": "1"}}

    def test_transfer_event_type(self):
        """Test that transfers get their own event type."""
        event = AuditEventBuilder.transaction_recorded(
            uuid4(), "transfer", "10", "cash", uuid4()
        )
        assert event.event_type == AuditEventType.TRANSFER_RECORDED
        assert event.is_user_action is True

    def test_recurring_transaction_is_not_user_action(self):
        """Test that materialized transactions aren't marked as user actions."""
        event = AuditEventBuilder.transaction_recorded(
            uuid4(), "expense", "10", "bank", uuid4(), is_recurring=True
        )
        assert event.event_type == AuditEventType.TRANSACTION_RECORDED
        assert event.is_user_action is False

    def test_rollback_is_warning(self):
        """Test rollback severity and reason."""
        event = AuditEventBuilder.state_rolled_back("balances", "disk full", uuid4())
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "disk full"
