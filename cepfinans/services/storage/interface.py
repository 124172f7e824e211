"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the controller decoupled from storage implementation

The interface mirrors what the controller needs and nothing more.
Append/update/delete return a plain success flag: False means the
backend refused the write (for example a duplicate) and the caller
must roll back. Backend failures raise StorageError.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from cepfinans.models.audit import AuditEvent
from cepfinans.models.finance import AccountBalances, RecurringDefinition, Transaction
from cepfinans.models.note import Note


class FinanceStorageInterface(ABC):
    """
    Abstract interface for finance data storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    # -- Balances ------------------------------------------------------------

    @abstractmethod
    async def load_balances(self) -> AccountBalances:
        """
        Load the stored balances.

        Returns zero balances when nothing has been stored yet.
        """
        pass

    @abstractmethod
    async def save_balances(self, balances: AccountBalances) -> bool:
        """
        Replace the stored balances.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    # -- Transactions --------------------------------------------------------

    @abstractmethod
    async def load_transactions(self) -> list[Transaction]:
        """Load all transactions, newest first."""
        pass

    @abstractmethod
    async def append_transaction(self, transaction: Transaction) -> bool:
        """
        Append a transaction to the log.

        Returns:
            True if stored, False if it duplicates an existing transaction

        Raises:
            StorageError: If the write fails
        """
        pass

    # -- Recurring definitions ----------------------------------------------

    @abstractmethod
    async def load_recurring_definitions(self) -> list[RecurringDefinition]:
        """Load all recurring definitions, active and inactive."""
        pass

    @abstractmethod
    async def append_recurring_definition(self, definition: RecurringDefinition) -> bool:
        """
        Store a new recurring definition.

        Returns:
            True if stored, False if it duplicates an existing definition
        """
        pass

    @abstractmethod
    async def update_recurring_definition(self, definition: RecurringDefinition) -> bool:
        """
        Replace the stored definition with the same ID.

        Returns:
            True if updated

        Raises:
            NotFoundError: If the definition doesn't exist
        """
        pass

    @abstractmethod
    async def delete_recurring_definition(self, definition_id: UUID) -> bool:
        """
        Delete a recurring definition by ID.

        Returns:
            True if deleted, False if it didn't exist
        """
        pass

    # -- Notes ---------------------------------------------------------------

    @abstractmethod
    async def load_notes(self) -> list[Note]:
        """Load all notes, newest first."""
        pass

    @abstractmethod
    async def append_note(self, note: Note) -> bool:
        """Store a new note. Returns False for duplicates."""
        pass

    @abstractmethod
    async def delete_note(self, note_id: UUID) -> bool:
        """Delete a note by ID. Returns False if it didn't exist."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one transaction and its balance update).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
