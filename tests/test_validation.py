"""
Tests for the two-stage validators and duplicate detection.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

from cepfinans.config import AppSettings
from cepfinans.models import (
    AccountBalances,
    Frequency,
    Note,
    RecurringDefinition,
    Transaction,
    TransactionType,
)
from cepfinans.validation import (
    RecurringDefinitionValidator,
    TransactionValidator,
    get_user_friendly_summary,
    is_duplicate_definition,
    is_duplicate_note,
    is_duplicate_transaction,
)


BALANCES = AccountBalances(cash=Decimal("100"), bank=Decimal("1000"))


def make_validator(**overrides) -> TransactionValidator:
    return TransactionValidator(AppSettings(**overrides))


def issue_types(result) -> list[str]:
    return [issue.issue_type for issue in result.issues]


class TestTransactionValidator:
    """Tests for transaction validation."""

    def test_valid_expense(self):
        tx = Transaction(type="expense", amount="20", category="Market", account="cash")
        result = make_validator().validate(tx, BALANCES)
        assert result.is_valid is True
        assert result.issues == []

    def test_empty_category_fails_schema(self):
        """Test that stage 2 is skipped when stage 1 fails."""
        tx = Transaction(type="expense", amount="20", category="", account="cash")
        result = make_validator().validate(tx, BALANCES)
        assert result.schema_valid is False
        assert result.is_valid is False
        assert issue_types(result) == ["missing"]

    def test_transfer_over_balance_fails(self):
        """Test that transfers can't exceed the source balance."""
        tx = Transaction(
            type=TransactionType.TRANSFER,
            amount="150",
            category="Transfer",
            account="cash",
            transfer_from="cash",
            transfer_to="bank",
        )
        result = make_validator().validate(tx, BALANCES)
        assert result.is_valid is False
        assert "insufficient_funds" in issue_types(result)

    def test_transfer_of_whole_balance_allowed(self):
        tx = Transaction(
            type=TransactionType.TRANSFER,
            amount="100",
            category="Transfer",
            account="cash",
            transfer_from="cash",
            transfer_to="savings",
        )
        assert make_validator().validate(tx, BALANCES).is_valid is True

    def test_expense_over_balance_allowed(self):
        """Test that expenses may overdraw; only transfers are checked."""
        tx = Transaction(type="expense", amount="500", category="Tamir", account="cash")
        assert make_validator().validate(tx, BALANCES).is_valid is True

    def test_large_amount_is_warning(self):
        tx = Transaction(type="income", amount="5000", category="İkramiye", account="bank")
        result = make_validator(max_transaction_amount=Decimal("1000")).validate(tx, BALANCES)
        assert result.is_valid is True
        assert "suspicious_value" in issue_types(result)
        assert len(result.warnings) == 1

    def test_future_date_is_warning(self):
        tx = Transaction(
            type="expense",
            amount="10",
            category="Market",
            account="cash",
            date=datetime.now() + timedelta(days=30),
        )
        result = make_validator().validate(tx, BALANCES)
        assert result.is_valid is True
        assert "future_date" in issue_types(result)

    def test_duplicate_is_error(self):
        """Test that identical fields count as a duplicate even with a new id."""
        when = datetime(2024, 3, 15, 10, 0)
        existing = Transaction(type="expense", amount="10", category="Market", account="cash", date=when)
        candidate = Transaction(type="expense", amount="10", category="Market", account="cash", date=when)

        result = make_validator().validate(candidate, BALANCES, [existing])
        assert result.is_valid is False
        assert "potential_duplicate" in issue_types(result)

    def test_summary_text(self):
        tx = Transaction(type="expense", amount="10", category="", account="cash")
        summary = get_user_friendly_summary(make_validator().validate(tx, BALANCES))
        assert "Category is required" in summary


class TestRecurringDefinitionValidator:
    """Tests for recurring definition validation."""

    def test_valid_monthly(self):
        d = RecurringDefinition(type="expense", amount="100", category="Kira", account="bank", day_of_month=1)
        result = RecurringDefinitionValidator().validate(d)
        assert result.is_valid is True
        assert result.warnings == []

    def test_monthly_requires_day(self):
        d = RecurringDefinition(type="expense", amount="100", category="Kira", account="bank")
        result = RecurringDefinitionValidator().validate(d)
        assert result.is_valid is False
        assert result.issues[0].field == "day_of_month"

    def test_yearly_requires_month(self):
        d = RecurringDefinition(
            type="expense",
            amount="100",
            category="Sigorta",
            account="bank",
            frequency=Frequency.YEARLY,
            day_of_month=1,
        )
        result = RecurringDefinitionValidator().validate(d)
        assert result.is_valid is False
        assert result.issues[0].field == "month_of_year"

    def test_custom_requires_text(self):
        d = RecurringDefinition(
            type="expense", amount="100", category="x", account="bank", frequency=Frequency.CUSTOM
        )
        assert RecurringDefinitionValidator().validate(d).is_valid is False

    def test_weekly_is_stored_with_warning(self):
        """Test that unevaluated frequencies pass with a warning."""
        d = RecurringDefinition(
            type="expense",
            amount="100",
            category="Market",
            account="cash",
            frequency=Frequency.WEEKLY,
            day_of_week=5,
        )
        result = RecurringDefinitionValidator().validate(d)
        assert result.is_valid is True
        assert "not_evaluated" in issue_types(result)

    def test_late_day_warns(self):
        d = RecurringDefinition(type="income", amount="100", category="Maaş", account="bank", day_of_month=31)
        result = RecurringDefinitionValidator().validate(d)
        assert result.is_valid is True
        assert "short_month" in issue_types(result)

    def test_duplicate_definition_rejected(self):
        start = date(2024, 1, 1)
        existing = RecurringDefinition(
            type="expense", amount="100", category="Kira", account="bank", day_of_month=1, start_date=start
        )
        candidate = RecurringDefinition(
            type="expense", amount="100", category="Kira", account="bank", day_of_month=1, start_date=start
        )
        result = RecurringDefinitionValidator().validate(candidate, [existing])
        assert result.is_valid is False
        assert "potential_duplicate" in issue_types(result)

    def test_definition_is_not_its_own_duplicate(self):
        """Test that re-validating a stored definition (on update) passes."""
        d = RecurringDefinition(type="expense", amount="100", category="Kira", account="bank", day_of_month=1)
        assert RecurringDefinitionValidator().validate(d, [d]).is_valid is True


class TestDuplicateDetection:
    """Tests for the field-equality duplicate rules."""

    def test_transaction_same_id(self):
        tx = Transaction(type="expense", amount="10", category="Market", account="cash")
        assert is_duplicate_transaction(tx, [tx]) is True

    def test_transaction_different_amount(self):
        when = datetime(2024, 3, 15)
        a = Transaction(type="expense", amount="10", category="Market", account="cash", date=when)
        b = Transaction(type="expense", amount="11", category="Market", account="cash", date=when)
        assert is_duplicate_transaction(b, [a]) is False

    def test_description_is_ignored(self):
        when = datetime(2024, 3, 15)
        a = Transaction(type="expense", amount="10", category="Market", account="cash", date=when, description="a")
        b = Transaction(type="expense", amount="10", category="Market", account="cash", date=when, description="b")
        assert is_duplicate_transaction(b, [a]) is True

    def test_transactions_from_different_definitions(self):
        when = datetime(2024, 3, 1)
        a = Transaction(type="expense", amount="9.99", category="Abonelik", account="bank", date=when, recurring_id=uuid4())
        b = Transaction(type="expense", amount="9.99", category="Abonelik", account="bank", date=when, recurring_id=uuid4())
        assert is_duplicate_transaction(b, [a]) is False

    def test_definition_different_day(self):
        a = RecurringDefinition(type="expense", amount="1", category="x", account="cash", day_of_month=1)
        b = RecurringDefinition(type="expense", amount="1", category="x", account="cash", day_of_month=2)
        assert is_duplicate_definition(b, [a]) is False

    def test_note_same_content_and_time(self):
        created = datetime(2024, 3, 15, 9, 0)
        a = Note(content="Fatura", created_at=created)
        b = Note(content="Fatura", created_at=created)
        c = Note(content="Fatura", created_at=created + timedelta(seconds=1))
        assert is_duplicate_note(b, [a]) is True
        assert is_duplicate_note(c, [a]) is False
