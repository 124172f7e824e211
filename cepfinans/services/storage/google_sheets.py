"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Users can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: a balance write can succeed while the
  transaction append failed, which is why the controller rolls back
- Limited query capabilities (we filter in Python)
- Last writer wins across devices

One worksheet per data type. Balances live in a single data row.
"""

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from cepfinans.config import GoogleSheetsSettings, get_settings
from cepfinans.models.audit import AuditEvent, AuditEventType, AuditSeverity
from cepfinans.models.finance import (
    AccountBalances,
    AccountKind,
    Frequency,
    RecurringDefinition,
    RecurringType,
    Transaction,
    TransactionType,
)
from cepfinans.models.note import Note
from cepfinans.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    FinanceStorageInterface,
    NotFoundError,
    StorageError,
)
from cepfinans.validation.duplicates import (
    is_duplicate_definition,
    is_duplicate_note,
    is_duplicate_transaction,
)


logger = structlog.get_logger(__name__)

# Decimal("abc") raises InvalidOperation, which is not a ValueError
ROW_ERRORS = (ValueError, KeyError, InvalidOperation)


BALANCE_COLUMNS = ["cash", "bank", "savings", "updated_at"]

TRANSACTION_COLUMNS = [
    "id",
    "type",
    "amount",
    "category",
    "description",
    "date",
    "account",
    "transfer_from",
    "transfer_to",
    "is_recurring",
    "recurring_id",
]

RECURRING_COLUMNS = [
    "id",
    "type",
    "amount",
    "category",
    "description",
    "account",
    "frequency",
    "day_of_month",
    "month_of_year",
    "day_of_week",
    "custom_frequency",
    "start_date",
    "end_date",
    "is_active",
]

NOTE_COLUMNS = ["id", "content", "date", "created_at", "tags_json"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_int(value: str) -> Optional[int]:
    return int(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_balances_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.balances_sheet_name, BALANCE_COLUMNS, rows=10)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.transactions_sheet_name, TRANSACTION_COLUMNS)

    def get_recurring_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.recurring_sheet_name, RECURRING_COLUMNS)

    def get_notes_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.notes_sheet_name, NOTE_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsFinanceStorage(FinanceStorageInterface):
    """
    Google Sheets implementation of finance storage.

    Every record is one row; rows are appended in chronological
    order and read back newest first.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -- Row conversion ------------------------------------------------------

    @staticmethod
    def _transaction_to_row(tx: Transaction) -> list:
        return [
            str(tx.id),
            tx.type.value,
            str(tx.amount),
            tx.category,
            tx.description,
            tx.date.isoformat(),
            tx.account.value,
            tx.transfer_from.value if tx.transfer_from else "",
            tx.transfer_to.value if tx.transfer_to else "",
            str(tx.is_recurring),
            str(tx.recurring_id) if tx.recurring_id else "",
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        return Transaction(
            id=UUID(_cell(row, 0)),
            type=TransactionType(_cell(row, 1)),
            amount=Decimal(_cell(row, 2)),
            category=_cell(row, 3),
            description=_cell(row, 4),
            date=datetime.fromisoformat(_cell(row, 5)),
            account=AccountKind(_cell(row, 6)),
            transfer_from=AccountKind(_cell(row, 7)) if _cell(row, 7) else None,
            transfer_to=AccountKind(_cell(row, 8)) if _cell(row, 8) else None,
            is_recurring=_cell(row, 9).lower() == "true",
            recurring_id=UUID(_cell(row, 10)) if _cell(row, 10) else None,
        )

    @staticmethod
    def _definition_to_row(definition: RecurringDefinition) -> list:
        def opt(value) -> str:
            return "" if value is None else str(value)

        return [
            str(definition.id),
            definition.type.value,
            str(definition.amount),
            definition.category,
            definition.description,
            definition.account.value,
            definition.frequency.value,
            opt(definition.day_of_month),
            opt(definition.month_of_year),
            opt(definition.day_of_week),
            definition.custom_frequency or "",
            definition.start_date.isoformat(),
            definition.end_date.isoformat() if definition.end_date else "",
            str(definition.is_active),
        ]

    @staticmethod
    def _row_to_definition(row: list) -> RecurringDefinition:
        return RecurringDefinition(
            id=UUID(_cell(row, 0)),
            type=RecurringType(_cell(row, 1)),
            amount=Decimal(_cell(row, 2)),
            category=_cell(row, 3),
            description=_cell(row, 4),
            account=AccountKind(_cell(row, 5)),
            frequency=Frequency(_cell(row, 6)),
            day_of_month=_optional_int(_cell(row, 7)),
            month_of_year=_optional_int(_cell(row, 8)),
            day_of_week=_optional_int(_cell(row, 9)),
            custom_frequency=_cell(row, 10) or None,
            start_date=date.fromisoformat(_cell(row, 11)),
            end_date=date.fromisoformat(_cell(row, 12)) if _cell(row, 12) else None,
            is_active=_cell(row, 13).lower() == "true",
        )

    @staticmethod
    def _note_to_row(note: Note) -> list:
        return [
            str(note.id),
            note.content,
            note.date.isoformat(),
            note.created_at.isoformat(),
            json.dumps(note.tags),
        ]

    @staticmethod
    def _row_to_note(row: list) -> Note:
        return Note(
            id=UUID(_cell(row, 0)),
            content=_cell(row, 1),
            date=date.fromisoformat(_cell(row, 2)),
            created_at=datetime.fromisoformat(_cell(row, 3)),
            tags=json.loads(_cell(row, 4)) if _cell(row, 4) else [],
        )

    def _read_rows(self, sheet: gspread.Worksheet, parse, kind: str) -> list:
        """Parse every data row, skipping (and logging) malformed ones."""
        items = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            if not row or not row[0]:
                continue
            try:
                items.append(parse(row))
            except ROW_ERRORS as e:
                logger.warning("sheets_row_skipped", kind=kind, row_id=row[0], error=str(e))
        return items

    @staticmethod
    def _find_row_index(sheet: gspread.Worksheet, entity_id: UUID) -> Optional[int]:
        """1-based sheet row index for an ID, or None."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):  # Row 1 is header
            if row and row[0] == str(entity_id):
                return idx
        return None

    # -- Balances ------------------------------------------------------------

    async def load_balances(self) -> AccountBalances:
        try:
            sheet = self._client.get_balances_sheet()
            rows = sheet.get_all_values()
            if len(rows) < 2:
                return AccountBalances()
            row = rows[1]
            return AccountBalances(
                cash=Decimal(_cell(row, 0, "0")),
                bank=Decimal(_cell(row, 1, "0")),
                savings=Decimal(_cell(row, 2, "0")),
            )
        except Exception as e:
            raise StorageError(f"Failed to load balances: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_balances(self, balances: AccountBalances) -> bool:
        try:
            sheet = self._client.get_balances_sheet()
            row = [
                str(balances.cash),
                str(balances.bank),
                str(balances.savings),
                datetime.utcnow().isoformat(),
            ]
            sheet.update(range_name="A2:D2", values=[row], value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save balances: {e}")

    # -- Transactions --------------------------------------------------------

    async def load_transactions(self) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            transactions = self._read_rows(sheet, self._row_to_transaction, "transaction")
        except Exception as e:
            raise StorageError(f"Failed to load transactions: {e}")
        transactions.reverse()
        return transactions

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_transaction(self, transaction: Transaction) -> bool:
        existing = await self.load_transactions()
        if is_duplicate_transaction(transaction, existing):
            logger.warning("duplicate_transaction_rejected", transaction_id=str(transaction.id))
            return False
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.append_row(self._transaction_to_row(transaction), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    # -- Recurring definitions ----------------------------------------------

    async def load_recurring_definitions(self) -> list[RecurringDefinition]:
        try:
            sheet = self._client.get_recurring_sheet()
            return self._read_rows(sheet, self._row_to_definition, "recurring")
        except Exception as e:
            raise StorageError(f"Failed to load recurring definitions: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_recurring_definition(self, definition: RecurringDefinition) -> bool:
        existing = await self.load_recurring_definitions()
        if is_duplicate_definition(definition, existing):
            logger.warning("duplicate_recurring_rejected", definition_id=str(definition.id))
            return False
        try:
            sheet = self._client.get_recurring_sheet()
            sheet.append_row(self._definition_to_row(definition), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save recurring definition: {e}")

    async def update_recurring_definition(self, definition: RecurringDefinition) -> bool:
        try:
            sheet = self._client.get_recurring_sheet()
            idx = self._find_row_index(sheet, definition.id)
            if idx is None:
                raise NotFoundError(f"Recurring definition not found: {definition.id}")
            sheet.update(
                range_name=f"A{idx}",
                values=[self._definition_to_row(definition)],
                value_input_option="RAW",
            )
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update recurring definition: {e}")

    async def delete_recurring_definition(self, definition_id: UUID) -> bool:
        try:
            sheet = self._client.get_recurring_sheet()
            idx = self._find_row_index(sheet, definition_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete recurring definition: {e}")

    # -- Notes ---------------------------------------------------------------

    async def load_notes(self) -> list[Note]:
        try:
            sheet = self._client.get_notes_sheet()
            notes = self._read_rows(sheet, self._row_to_note, "note")
        except Exception as e:
            raise StorageError(f"Failed to load notes: {e}")
        notes.reverse()
        return notes

    async def append_note(self, note: Note) -> bool:
        existing = await self.load_notes()
        if is_duplicate_note(note, existing):
            return False
        try:
            sheet = self._client.get_notes_sheet()
            sheet.append_row(self._note_to_row(note), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save note: {e}")

    async def delete_note(self, note_id: UUID) -> bool:
        try:
            sheet = self._client.get_notes_sheet()
            idx = self._find_row_index(sheet, note_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete note: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=UUID(_cell(row, 5)) if _cell(row, 5) else None,
            correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            description=_cell(row, 7),
            details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
            error_message=_cell(row, 9) or None,
            is_user_action=_cell(row, 10).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ROW_ERRORS as e:
                logger.warning("audit_row_skipped", row_id=row[0], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._all_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
