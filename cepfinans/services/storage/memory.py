"""
In-Memory Storage Implementation

Keeps everything in Python lists for the lifetime of the process.
Used as the default backend in development and by the tests.

It applies the same duplicate rules as the Google Sheets backend,
so controller behaviour is identical on both.
"""

from typing import Optional
from uuid import UUID

from cepfinans.models.audit import AuditEvent
from cepfinans.models.finance import AccountBalances, RecurringDefinition, Transaction
from cepfinans.models.note import Note
from cepfinans.services.storage.interface import (
    AuditStorageInterface,
    FinanceStorageInterface,
    NotFoundError,
)
from cepfinans.validation.duplicates import (
    is_duplicate_definition,
    is_duplicate_note,
    is_duplicate_transaction,
)


class InMemoryFinanceStorage(FinanceStorageInterface):
    """Finance storage backed by plain lists."""

    def __init__(
        self,
        balances: Optional[AccountBalances] = None,
        transactions: Optional[list[Transaction]] = None,
        definitions: Optional[list[RecurringDefinition]] = None,
        notes: Optional[list[Note]] = None,
    ):
        self._balances = balances or AccountBalances()
        self._transactions = list(transactions or [])
        self._definitions = list(definitions or [])
        self._notes = list(notes or [])

    async def load_balances(self) -> AccountBalances:
        return self._balances

    async def save_balances(self, balances: AccountBalances) -> bool:
        self._balances = balances
        return True

    async def load_transactions(self) -> list[Transaction]:
        return list(self._transactions)

    async def append_transaction(self, transaction: Transaction) -> bool:
        if is_duplicate_transaction(transaction, self._transactions):
            return False
        self._transactions.insert(0, transaction)
        return True

    async def load_recurring_definitions(self) -> list[RecurringDefinition]:
        return list(self._definitions)

    async def append_recurring_definition(self, definition: RecurringDefinition) -> bool:
        if is_duplicate_definition(definition, self._definitions):
            return False
        self._definitions.append(definition)
        return True

    async def update_recurring_definition(self, definition: RecurringDefinition) -> bool:
        for idx, existing in enumerate(self._definitions):
            if existing.id == definition.id:
                self._definitions[idx] = definition
                return True
        raise NotFoundError(f"Recurring definition not found: {definition.id}")

    async def delete_recurring_definition(self, definition_id: UUID) -> bool:
        before = len(self._definitions)
        self._definitions = [d for d in self._definitions if d.id != definition_id]
        return len(self._definitions) < before

    async def load_notes(self) -> list[Note]:
        return list(self._notes)

    async def append_note(self, note: Note) -> bool:
        if is_duplicate_note(note, self._notes):
            return False
        self._notes.insert(0, note)
        return True

    async def delete_note(self, note_id: UUID) -> bool:
        before = len(self._notes)
        self._notes = [n for n in self._notes if n.id != note_id]
        return len(self._notes) < before


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in memory."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
