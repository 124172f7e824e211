"""
Main Orchestrator for CepFinans

This module ties together all the components and owns the
application state:
1. Account balances
2. Transaction log
3. Recurring definitions
4. Notes

DESIGN DECISION: The controller is the only place state changes.
Every mutation follows the same discipline:
- update the in-memory state first (optimistic)
- persist through the storage interface
- on failure, restore the previous value and return a failure result

The pure engine functions (schedule, reconciler, materializer) never
touch storage. The controller feeds them state and stores what they return.

KNOWN GAPS (kept on purpose, they match how the data has always behaved):
- A transaction whose balance write fails stays in the log while the
  balances are reverted.
- There is no locking: the last writer to storage wins across devices.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field, ValidationError

from cepfinans.audit import AuditLogger, configure_logging, create_correlation_id
from cepfinans.config import AppSettings, get_settings, validate_all_settings
from cepfinans.engine import (
    InvalidDefinitionError,
    apply_transaction,
    materialize_due,
    upcoming,
)
from cepfinans.models.audit import AuditEventType
from cepfinans.models.finance import (
    AccountBalances,
    AccountKind,
    OperationResult,
    RecurringDefinition,
    Transaction,
    TransactionType,
    UpcomingOccurrence,
    ValidationResult,
)
from cepfinans.models.note import Note, NoteFilter
from cepfinans.models.report import DailyTotals, FinanceSummary, MonthlyTotals
from cepfinans.reports import (
    compute_summary,
    daily_report,
    filter_notes,
    monthly_breakdown,
)
from cepfinans.services.storage import (
    FinanceStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    StorageError,
)
from cepfinans.validation import RecurringDefinitionValidator, TransactionValidator


logger = structlog.get_logger(__name__)


class FinanceState(BaseModel):
    """Everything the controller holds in memory for one session."""

    balances: AccountBalances = Field(default_factory=AccountBalances)
    transactions: list[Transaction] = Field(
        default_factory=list,
        description="Newest first"
    )
    recurring_definitions: list[RecurringDefinition] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)
    is_first_time: bool = True


def _issues_to_dicts(result: ValidationResult) -> list[dict]:
    return [
        {"field": i.field, "type": i.issue_type, "message": i.message}
        for i in result.issues
    ]


class FinanceController:
    """
    Owns the finance state and coordinates every change to it.

    Flow for a new transaction:
    1. Validate → reject early with a failure result
    2. Append to the log (optimistic) → persist → roll back on failure
    3. Reconcile balances (optimistic) → persist → roll back on failure
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        transaction_validator: Optional[TransactionValidator] = None,
        recurring_validator: Optional[RecurringDefinitionValidator] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app
        self._transaction_validator = transaction_validator or TransactionValidator(self._settings)
        self._recurring_validator = recurring_validator or RecurringDefinitionValidator()
        self._state = FinanceState()

    @property
    def state(self) -> FinanceState:
        return self._state

    @property
    def balances(self) -> AccountBalances:
        return self._state.balances

    # =========================================================================
    # Persistence helpers
    # =========================================================================

    async def _persist(
        self,
        operation: str,
        call: Callable[..., Awaitable[bool]],
        *args,
        correlation_id: UUID,
    ) -> Optional[str]:
        """
        Run a storage call.

        Returns None on success, otherwise the reason it failed.
        """
        try:
            stored = await call(*args)
        except StorageError as e:
            logger.error("storage_call_failed", operation=operation, error=str(e))
            await self._audit_logger.log_storage_error(operation, str(e), correlation_id)
            return f"{operation} failed: {e}"

        if not stored:
            logger.warning("storage_call_rejected", operation=operation)
            return f"{operation} was rejected by storage"
        return None

    async def _fail(
        self,
        entity_type: str,
        reason: str,
        correlation_id: UUID,
        entity_id: Optional[UUID] = None,
    ) -> OperationResult:
        await self._audit_logger.log_rollback(entity_type, reason, correlation_id, entity_id)
        return OperationResult.failure(reason, entity_id=entity_id)

    # =========================================================================
    # Loading and setup
    # =========================================================================

    async def load(self) -> OperationResult:
        """Replace the in-memory state with what storage holds."""
        try:
            balances, transactions, definitions, notes = await asyncio.gather(
                self._storage.load_balances(),
                self._storage.load_transactions(),
                self._storage.load_recurring_definitions(),
                self._storage.load_notes(),
            )
        except StorageError as e:
            logger.error("state_load_failed", error=str(e))
            return OperationResult.failure(f"Could not load data: {e}")

        self._state = FinanceState(
            balances=balances,
            transactions=transactions,
            recurring_definitions=definitions,
            notes=notes,
            is_first_time=balances.total == 0 and not transactions,
        )
        logger.info(
            "state_loaded",
            transactions=len(transactions),
            recurring_definitions=len(definitions),
            notes=len(notes),
        )
        return OperationResult.ok()

    async def initial_setup(self, balances: AccountBalances) -> OperationResult:
        """Store the opening balances entered on first use."""
        correlation_id = create_correlation_id()

        self._state.balances = balances
        self._state.is_first_time = False

        reason = await self._persist(
            "save_balances", self._storage.save_balances, balances,
            correlation_id=correlation_id,
        )
        if reason:
            self._state.balances = AccountBalances()
            self._state.is_first_time = True
            return await self._fail("balances", reason, correlation_id)

        await self._audit_logger.log_initial_setup(balances.as_dict(), correlation_id)
        return OperationResult.ok()

    # =========================================================================
    # Transactions
    # =========================================================================

    async def record_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """
        Record a transaction and reconcile the balances.

        Returns a failure result (with state restored) if validation
        or either storage write fails.
        """
        correlation_id = correlation_id or create_correlation_id()

        validation = self._transaction_validator.validate(
            transaction, self._state.balances, self._state.transactions
        )
        if not validation.is_valid:
            await self._audit_logger.log_validation_failed(
                entity_type="transaction",
                entity_id=transaction.id,
                issues=_issues_to_dicts(validation),
                correlation_id=correlation_id,
            )
            return OperationResult.failure(
                validation.first_error or "Transaction is not valid",
                entity_id=transaction.id,
            )

        # Step 1: the log
        previous_transactions = self._state.transactions
        self._state.transactions = [transaction] + previous_transactions

        reason = await self._persist(
            "append_transaction", self._storage.append_transaction, transaction,
            correlation_id=correlation_id,
        )
        if reason:
            self._state.transactions = previous_transactions
            return await self._fail("transaction", reason, correlation_id, transaction.id)

        await self._audit_logger.log_transaction_recorded(
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=str(transaction.amount),
            account=transaction.account.value,
            correlation_id=correlation_id,
            is_recurring=transaction.is_recurring,
        )

        # Step 2: the balances
        previous_balances = self._state.balances
        new_balances = apply_transaction(previous_balances, transaction)
        self._state.balances = new_balances

        reason = await self._persist(
            "save_balances", self._storage.save_balances, new_balances,
            correlation_id=correlation_id,
        )
        if reason:
            self._state.balances = previous_balances
            return await self._fail("balances", reason, correlation_id, transaction.id)

        await self._audit_logger.log_balances_updated(
            previous=previous_balances.as_dict(),
            current=new_balances.as_dict(),
            correlation_id=correlation_id,
        )
        return OperationResult.ok(transaction.id)

    async def add_transaction(
        self,
        type: Union[TransactionType, str],
        amount: Union[Decimal, str, int],
        category: str,
        account: Union[AccountKind, str],
        description: str = "",
        when: Optional[datetime] = None,
    ) -> OperationResult:
        """Build and record a manual income or expense."""
        try:
            transaction = Transaction(
                type=type,
                amount=amount,
                category=category,
                account=account,
                description=description,
                date=when or datetime.now(),
            )
        except ValidationError as e:
            logger.warning("transaction_rejected", error=str(e))
            return OperationResult.failure(f"Invalid transaction: {e.errors()[0]['msg']}")
        return await self.record_transaction(transaction)

    async def add_transfer(
        self,
        source: Union[AccountKind, str],
        target: Union[AccountKind, str],
        amount: Union[Decimal, str, int],
        description: str = "",
    ) -> OperationResult:
        """
        Move money between two of the user's accounts.

        Refused when the source account doesn't hold `amount`.
        """
        try:
            transaction = Transaction(
                type=TransactionType.TRANSFER,
                amount=amount,
                category=self._settings.transfer_category,
                description=description,
                account=source,
                transfer_from=source,
                transfer_to=target,
            )
        except ValidationError as e:
            logger.warning("transfer_rejected", error=str(e))
            return OperationResult.failure(f"Invalid transfer: {e.errors()[0]['msg']}")
        return await self.record_transaction(transaction)

    # =========================================================================
    # Recurring definitions
    # =========================================================================

    async def apply_due_recurring(self, today: Optional[date] = None) -> list[OperationResult]:
        """
        Materialize and record every recurring transaction due today.

        Safe to call on every refresh: definitions already materialized
        today are skipped.
        """
        today = today or date.today()
        correlation_id = create_correlation_id()

        results = []
        for definition in list(self._state.recurring_definitions):
            # One malformed definition must not block the others due today
            try:
                due = materialize_due(
                    [definition],
                    self._state.transactions,
                    today,
                    self._settings.recurring_description_suffix,
                )
            except InvalidDefinitionError as e:
                await self._audit_logger.log_error(
                    error_type="invalid_recurring_definition",
                    error_message=str(e),
                    details={"definition_id": str(e.definition_id)},
                    correlation_id=correlation_id,
                )
                results.append(OperationResult.failure(str(e), entity_id=e.definition_id))
                continue

            for transaction in due:
                result = await self.record_transaction(transaction, correlation_id)
                if result.success:
                    await self._audit_logger.log_recurring_materialized(
                        definition_id=transaction.recurring_id,
                        transaction_id=transaction.id,
                        amount=str(transaction.amount),
                        correlation_id=correlation_id,
                    )
                results.append(result)
        return results

    def upcoming(self, today: Optional[date] = None) -> list[UpcomingOccurrence]:
        """Next occurrence of every active definition, soonest first."""
        return upcoming(self._state.recurring_definitions, today or date.today())

    def get_recurring(self, definition_id: UUID) -> Optional[RecurringDefinition]:
        for definition in self._state.recurring_definitions:
            if definition.id == definition_id:
                return definition
        return None

    async def add_recurring(self, definition: RecurringDefinition) -> OperationResult:
        """Validate and store a new recurring definition."""
        correlation_id = create_correlation_id()

        validation = self._recurring_validator.validate(
            definition, self._state.recurring_definitions
        )
        if not validation.is_valid:
            await self._audit_logger.log_validation_failed(
                entity_type="recurring",
                entity_id=definition.id,
                issues=_issues_to_dicts(validation),
                correlation_id=correlation_id,
            )
            return OperationResult.failure(
                validation.first_error or "Recurring definition is not valid",
                entity_id=definition.id,
            )

        previous = self._state.recurring_definitions
        self._state.recurring_definitions = previous + [definition]

        reason = await self._persist(
            "append_recurring_definition",
            self._storage.append_recurring_definition,
            definition,
            correlation_id=correlation_id,
        )
        if reason:
            self._state.recurring_definitions = previous
            return await self._fail("recurring", reason, correlation_id, definition.id)

        await self._audit_logger.log_recurring_changed(
            AuditEventType.RECURRING_ADDED,
            definition.id,
            f"Recurring {definition.type.value} added: {definition.amount} {definition.frequency.value}",
            correlation_id,
            details={"warnings": validation.warnings},
        )
        return OperationResult.ok(definition.id)

    async def _replace_recurring(
        self,
        updated: RecurringDefinition,
        event_type: AuditEventType,
        description: str,
        correlation_id: UUID,
    ) -> OperationResult:
        previous = self._state.recurring_definitions
        self._state.recurring_definitions = [
            updated if d.id == updated.id else d for d in previous
        ]

        reason = await self._persist(
            "update_recurring_definition",
            self._storage.update_recurring_definition,
            updated,
            correlation_id=correlation_id,
        )
        if reason:
            self._state.recurring_definitions = previous
            return await self._fail("recurring", reason, correlation_id, updated.id)

        await self._audit_logger.log_recurring_changed(
            event_type, updated.id, description, correlation_id
        )
        return OperationResult.ok(updated.id)

    async def update_recurring(self, definition: RecurringDefinition) -> OperationResult:
        """Replace an existing definition after validating it."""
        correlation_id = create_correlation_id()

        if self.get_recurring(definition.id) is None:
            return OperationResult.failure(
                f"Recurring definition not found: {definition.id}",
                entity_id=definition.id,
            )

        validation = self._recurring_validator.validate(
            definition, self._state.recurring_definitions
        )
        if not validation.is_valid:
            await self._audit_logger.log_validation_failed(
                entity_type="recurring",
                entity_id=definition.id,
                issues=_issues_to_dicts(validation),
                correlation_id=correlation_id,
            )
            return OperationResult.failure(
                validation.first_error or "Recurring definition is not valid",
                entity_id=definition.id,
            )

        return await self._replace_recurring(
            definition,
            AuditEventType.RECURRING_UPDATED,
            "Recurring definition updated",
            correlation_id,
        )

    async def toggle_recurring(self, definition_id: UUID) -> OperationResult:
        """Flip a definition between active and inactive."""
        existing = self.get_recurring(definition_id)
        if existing is None:
            return OperationResult.failure(
                f"Recurring definition not found: {definition_id}",
                entity_id=definition_id,
            )

        updated = existing.model_copy(update={"is_active": not existing.is_active})
        state = "activated" if updated.is_active else "deactivated"
        return await self._replace_recurring(
            updated,
            AuditEventType.RECURRING_TOGGLED,
            f"Recurring definition {state}",
            create_correlation_id(),
        )

    async def delete_recurring(self, definition_id: UUID) -> OperationResult:
        """Remove a definition. Transactions it already produced are kept."""
        correlation_id = create_correlation_id()

        if self.get_recurring(definition_id) is None:
            return OperationResult.failure(
                f"Recurring definition not found: {definition_id}",
                entity_id=definition_id,
            )

        previous = self._state.recurring_definitions
        self._state.recurring_definitions = [d for d in previous if d.id != definition_id]

        reason = await self._persist(
            "delete_recurring_definition",
            self._storage.delete_recurring_definition,
            definition_id,
            correlation_id=correlation_id,
        )
        if reason:
            self._state.recurring_definitions = previous
            return await self._fail("recurring", reason, correlation_id, definition_id)

        await self._audit_logger.log_recurring_changed(
            AuditEventType.RECURRING_DELETED,
            definition_id,
            "Recurring definition deleted",
            correlation_id,
        )
        return OperationResult.ok(definition_id)

    # =========================================================================
    # Notes
    # =========================================================================

    async def add_note(self, content: str, tags: str = "") -> OperationResult:
        """Store a note; `tags` is a comma-separated string."""
        correlation_id = create_correlation_id()

        try:
            note = Note.from_tag_string(content, tags)
        except ValidationError:
            return OperationResult.failure("Note content cannot be empty")

        previous = self._state.notes
        self._state.notes = [note] + previous

        reason = await self._persist(
            "append_note", self._storage.append_note, note,
            correlation_id=correlation_id,
        )
        if reason:
            self._state.notes = previous
            return await self._fail("note", reason, correlation_id, note.id)

        await self._audit_logger.log_note_changed(AuditEventType.NOTE_ADDED, note.id, correlation_id)
        return OperationResult.ok(note.id)

    async def delete_note(self, note_id: UUID) -> OperationResult:
        """
        Delete a note.

        Unlike other mutations this persists first and only then
        updates the state, so there is nothing to roll back.
        """
        correlation_id = create_correlation_id()

        reason = await self._persist(
            "delete_note", self._storage.delete_note, note_id,
            correlation_id=correlation_id,
        )
        if reason:
            return OperationResult.failure(reason, entity_id=note_id)

        self._state.notes = [n for n in self._state.notes if n.id != note_id]
        await self._audit_logger.log_note_changed(AuditEventType.NOTE_DELETED, note_id, correlation_id)
        return OperationResult.ok(note_id)

    # =========================================================================
    # Reports
    # =========================================================================

    def summary(self) -> FinanceSummary:
        return compute_summary(
            self._state.balances,
            self._state.transactions,
            self._state.recurring_definitions,
        )

    def monthly_breakdown(self, today: Optional[date] = None) -> list[MonthlyTotals]:
        return monthly_breakdown(
            self._state.transactions,
            today or date.today(),
            self._settings.monthly_breakdown_months,
        )

    def daily_report(self) -> list[DailyTotals]:
        return daily_report(self._state.transactions)

    def filtered_notes(
        self,
        note_filter: NoteFilter = NoteFilter.ALL,
        today: Optional[date] = None,
    ) -> list[Note]:
        return filter_notes(self._state.notes, note_filter, today or date.today())


def create_app_components(
    settings: Optional[AppSettings] = None,
) -> FinanceController:
    """
    Factory function to create the controller with its storage.

    Uses Google Sheets when configured; falls back to in-memory
    storage (with a logged warning) if Sheets can't be set up.
    """
    settings = settings or get_settings().app
    configure_logging(debug=settings.debug_mode)

    if settings.uses_google_sheets:
        status = validate_all_settings()
        if status.get("google_sheets"):
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsFinanceStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
            return FinanceController(storage, audit_logger=audit_logger, settings=settings)

        # Storage not configured - continue without it
        logger.warning(
            "google_sheets_not_configured",
            error=status.get("google_sheets_error"),
        )

    return FinanceController(
        InMemoryFinanceStorage(),
        audit_logger=AuditLogger(InMemoryAuditStorage()),
        settings=settings,
    )
