"""
Tests for the storage backends.

The Google Sheets backend is exercised against MagicMock worksheets;
no network calls are made.
"""

import asyncio
import json
import pytest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

from cepfinans.models import (
    AccountBalances,
    AuditEventBuilder,
    Frequency,
    Note,
    RecurringDefinition,
    Transaction,
    TransactionType,
)
from cepfinans.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsFinanceStorage,
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    NotFoundError,
    StorageError,
)
from cepfinans.services.storage.google_sheets import (
    NOTE_COLUMNS,
    RECURRING_COLUMNS,
    TRANSACTION_COLUMNS,
)


def run(coro):
    return asyncio.run(coro)


def make_transaction(**kwargs) -> Transaction:
    fields = dict(type="expense", amount="10", category="Market", account="cash")
    fields.update(kwargs)
    return Transaction(**fields)


def make_definition(**kwargs) -> RecurringDefinition:
    fields = dict(type="expense", amount="100", category="Kira", account="bank", day_of_month=1)
    fields.update(kwargs)
    return RecurringDefinition(**fields)


class TestInMemoryStorage:
    """Tests for the in-memory backend."""

    def test_balances_round_trip(self):
        storage = InMemoryFinanceStorage()
        balances = AccountBalances(cash=Decimal("5"))
        assert run(storage.save_balances(balances)) is True
        assert run(storage.load_balances()) == balances

    def test_transactions_newest_first(self):
        storage = InMemoryFinanceStorage()
        first = make_transaction(amount="1")
        second = make_transaction(amount="2")
        run(storage.append_transaction(first))
        run(storage.append_transaction(second))

        loaded = run(storage.load_transactions())
        assert [tx.id for tx in loaded] == [second.id, first.id]

    def test_duplicate_transaction_refused(self):
        """Test that the backend refuses duplicates with False."""
        storage = InMemoryFinanceStorage()
        tx = make_transaction()
        assert run(storage.append_transaction(tx)) is True
        assert run(storage.append_transaction(tx)) is False
        assert len(run(storage.load_transactions())) == 1

    def test_update_recurring(self):
        definition = make_definition()
        storage = InMemoryFinanceStorage(definitions=[definition])
        updated = definition.model_copy(update={"is_active": False})

        assert run(storage.update_recurring_definition(updated)) is True
        assert run(storage.load_recurring_definitions())[0].is_active is False

    def test_update_missing_recurring_raises(self):
        storage = InMemoryFinanceStorage()
        with pytest.raises(NotFoundError):
            run(storage.update_recurring_definition(make_definition()))

    def test_delete_recurring(self):
        definition = make_definition()
        storage = InMemoryFinanceStorage(definitions=[definition])
        assert run(storage.delete_recurring_definition(definition.id)) is True
        assert run(storage.delete_recurring_definition(definition.id)) is False

    def test_notes(self):
        storage = InMemoryFinanceStorage()
        note = Note(content="Fatura öde")
        assert run(storage.append_note(note)) is True
        assert run(storage.append_note(note)) is False
        assert run(storage.delete_note(note.id)) is True
        assert run(storage.load_notes()) == []

    def test_loaded_lists_are_copies(self):
        """Test that callers can't mutate the backend through a loaded list."""
        storage = InMemoryFinanceStorage()
        run(storage.append_transaction(make_transaction()))
        run(storage.load_transactions()).clear()
        assert len(run(storage.load_transactions())) == 1

    def test_audit_storage(self):
        storage = InMemoryAuditStorage()
        cid = uuid4()
        run(storage.append_event(AuditEventBuilder.state_rolled_back("balances", "x", cid)))
        run(storage.append_event(AuditEventBuilder.storage_error("save", "y", uuid4())))

        assert len(run(storage.get_events_by_correlation_id(cid))) == 1
        assert len(run(storage.get_recent_events(limit=1))) == 1


def sheets_client(**sheets) -> MagicMock:
    """A GoogleSheetsClient stand-in returning the given worksheets."""
    client = MagicMock()
    for name, sheet in sheets.items():
        getattr(client, f"get_{name}_sheet").return_value = sheet
    return client


def worksheet(header: list, rows: list = ()) -> MagicMock:
    sheet = MagicMock()
    sheet.get_all_values.return_value = [header] + list(rows)
    return sheet


class TestGoogleSheetsFinanceStorage:
    """Tests for the Google Sheets backend with mocked worksheets."""

    def test_load_balances_empty_sheet(self):
        sheet = worksheet(["cash", "bank", "savings", "updated_at"])
        storage = GoogleSheetsFinanceStorage(sheets_client(balances=sheet))
        assert run(storage.load_balances()) == AccountBalances()

    def test_load_balances(self):
        sheet = worksheet(
            ["cash", "bank", "savings", "updated_at"],
            [["12.50", "300", "", "2024-03-15T10:00:00"]],
        )
        storage = GoogleSheetsFinanceStorage(sheets_client(balances=sheet))
        balances = run(storage.load_balances())
        assert balances.cash == Decimal("12.50")
        assert balances.bank == Decimal("300")
        assert balances.savings == Decimal("0")

    def test_load_balances_bad_cell_raises_storage_error(self):
        sheet = worksheet(["cash", "bank", "savings", "updated_at"], [["abc", "300", "0", ""]])
        storage = GoogleSheetsFinanceStorage(sheets_client(balances=sheet))
        with pytest.raises(StorageError):
            run(storage.load_balances())

    def test_save_balances_writes_row_two(self):
        sheet = worksheet(["cash", "bank", "savings", "updated_at"])
        storage = GoogleSheetsFinanceStorage(sheets_client(balances=sheet))

        assert run(storage.save_balances(AccountBalances(cash=Decimal("1")))) is True

        kwargs = sheet.update.call_args.kwargs
        assert kwargs["range_name"] == "A2:D2"
        assert kwargs["values"][0][:3] == ["1", "0", "0"]

    def test_append_transaction(self):
        sheet = worksheet(TRANSACTION_COLUMNS)
        storage = GoogleSheetsFinanceStorage(sheets_client(transactions=sheet))
        tx = make_transaction(date=datetime(2024, 3, 15, 9, 30))

        assert run(storage.append_transaction(tx)) is True

        row = sheet.append_row.call_args.args[0]
        assert row[0] == str(tx.id)
        assert row[1] == "expense"
        assert row[5] == "2024-03-15T09:30:00"

    def test_append_duplicate_transaction_refused(self):
        """Test that a row already in the sheet isn't appended again."""
        tx = make_transaction(date=datetime(2024, 3, 15, 9, 30))
        sheet = worksheet(TRANSACTION_COLUMNS, [GoogleSheetsFinanceStorage._transaction_to_row(tx)])
        storage = GoogleSheetsFinanceStorage(sheets_client(transactions=sheet))

        assert run(storage.append_transaction(tx)) is False
        sheet.append_row.assert_not_called()

    def test_load_transactions_newest_first_and_skips_bad_rows(self):
        older = make_transaction(amount="1", date=datetime(2024, 3, 1))
        newer = make_transaction(amount="2", date=datetime(2024, 3, 2))
        transfer = Transaction(
            type=TransactionType.TRANSFER,
            amount="5",
            category="Transfer",
            account="bank",
            transfer_from="bank",
            transfer_to="savings",
            date=datetime(2024, 3, 3),
        )
        rows = [
            GoogleSheetsFinanceStorage._transaction_to_row(older),
            ["not-a-uuid", "expense"],
            GoogleSheetsFinanceStorage._transaction_to_row(newer),
            GoogleSheetsFinanceStorage._transaction_to_row(transfer),
        ]
        storage = GoogleSheetsFinanceStorage(
            sheets_client(transactions=worksheet(TRANSACTION_COLUMNS, rows))
        )

        loaded = run(storage.load_transactions())

        assert [tx.id for tx in loaded] == [transfer.id, newer.id, older.id]
        assert loaded[0].transfer_to.value == "savings"

    def test_load_transactions_skips_non_numeric_amount(self):
        good = make_transaction(date=datetime(2024, 3, 1))
        bad = GoogleSheetsFinanceStorage._transaction_to_row(make_transaction())
        bad[2] = "abc"
        rows = [bad, GoogleSheetsFinanceStorage._transaction_to_row(good)]
        storage = GoogleSheetsFinanceStorage(
            sheets_client(transactions=worksheet(TRANSACTION_COLUMNS, rows))
        )

        assert [tx.id for tx in run(storage.load_transactions())] == [good.id]

    def test_recurring_row_conversion(self):
        definition = make_definition(
            frequency=Frequency.YEARLY,
            day_of_month=10,
            month_of_year=1,
            end_date=date(2030, 1, 1),
        )
        row = GoogleSheetsFinanceStorage._definition_to_row(definition)
        assert len(row) == len(RECURRING_COLUMNS)
        assert GoogleSheetsFinanceStorage._row_to_definition(row) == definition

    def test_update_recurring_writes_found_row(self):
        definition = make_definition()
        other = make_definition(day_of_month=2)
        sheet = worksheet(
            RECURRING_COLUMNS,
            [
                GoogleSheetsFinanceStorage._definition_to_row(other),
                GoogleSheetsFinanceStorage._definition_to_row(definition),
            ],
        )
        storage = GoogleSheetsFinanceStorage(sheets_client(recurring=sheet))

        assert run(storage.update_recurring_definition(definition)) is True
        assert sheet.update.call_args.kwargs["range_name"] == "A3"

    def test_update_missing_recurring_raises(self):
        sheet = worksheet(RECURRING_COLUMNS)
        storage = GoogleSheetsFinanceStorage(sheets_client(recurring=sheet))
        with pytest.raises(NotFoundError):
            run(storage.update_recurring_definition(make_definition()))

    def test_delete_note(self):
        note = Note(content="Fatura", tags=["ev"])
        sheet = worksheet(NOTE_COLUMNS, [GoogleSheetsFinanceStorage._note_to_row(note)])
        storage = GoogleSheetsFinanceStorage(sheets_client(notes=sheet))

        assert run(storage.delete_note(note.id)) is True
        sheet.delete_rows.assert_called_once_with(2)

    def test_note_tags_stored_as_json(self):
        note = Note(content="Fatura", tags=["ev", "aylık"])
        row = GoogleSheetsFinanceStorage._note_to_row(note)
        assert json.loads(row[4]) == ["ev", "aylık"]
        assert GoogleSheetsFinanceStorage._row_to_note(row) == note

    def test_load_failure_raises_storage_error(self):
        """Test that API failures surface as StorageError."""
        client = MagicMock()
        client.get_notes_sheet.side_effect = RuntimeError("quota exceeded")
        storage = GoogleSheetsFinanceStorage(client)
        with pytest.raises(StorageError):
            run(storage.load_notes())


class TestGoogleSheetsAuditStorage:
    """Tests for the audit sheet."""

    def test_append_and_query(self):
        cid = uuid4()
        event = AuditEventBuilder.state_rolled_back("balances", "x", cid)
        sheet = worksheet([], [event.to_sheets_row()])
        storage = GoogleSheetsAuditStorage(sheets_client(audit=sheet))

        assert run(storage.append_event(event)) is True
        sheet.append_row.assert_called_once()

        found = run(storage.get_events_by_correlation_id(cid))
        assert [e.event_id for e in found] == [event.event_id]
