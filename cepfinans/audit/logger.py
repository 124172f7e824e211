"""
Audit Logger

DESIGN DECISION: Audit output never decides whether a change succeeds.
A failing audit sink is reported in the local log and the controller
carries on; only finance storage failures trigger a rollback.

Logging setup lives here too: structlog renders JSON lines through the
stdlib logging module, configured once at import.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from cepfinans.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from cepfinans.services.storage import AuditStorageInterface


def configure_logging(debug: bool = False) -> None:
    """Configure structlog to emit JSON lines through the stdlib logger."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        format="%(message)s",
        level=level,
    )
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Writes every AuditEvent to the local JSON log and, when
    configured, to the audit worksheet.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Audit sink. None keeps events in the local log only.
        """
        self._storage = storage
        self._logger = structlog.get_logger("cepfinans.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit one event.

        Returns False only when a configured sink failed to store it.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_initial_setup(
        self,
        balances: dict[str, str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.initial_setup_completed(balances, correlation_id))

    async def log_transaction_recorded(
        self,
        transaction_id: UUID,
        transaction_type: str,
        amount: str,
        account: str,
        correlation_id: UUID,
        is_recurring: bool = False,
    ) -> None:
        """Log a transaction that reached storage."""
        event = AuditEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            account=account,
            correlation_id=correlation_id,
            is_recurring=is_recurring,
        )
        await self.log(event)

    async def log_balances_updated(
        self,
        previous: dict[str, str],
        current: dict[str, str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.balances_updated(previous, current, correlation_id))

    async def log_rollback(
        self,
        entity_type: str,
        reason: str,
        correlation_id: UUID,
        entity_id: Optional[UUID] = None,
    ) -> None:
        """Log that an optimistic update was reverted."""
        event = AuditEventBuilder.state_rolled_back(
            entity_type=entity_type,
            reason=reason,
            correlation_id=correlation_id,
            entity_id=entity_id,
        )
        await self.log(event)

    async def log_recurring_changed(
        self,
        event_type: AuditEventType,
        definition_id: UUID,
        description: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        event = AuditEventBuilder.recurring_changed(
            event_type=event_type,
            definition_id=definition_id,
            description=description,
            correlation_id=correlation_id,
            details=details,
        )
        await self.log(event)

    async def log_recurring_materialized(
        self,
        definition_id: UUID,
        transaction_id: UUID,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.recurring_materialized(
            definition_id=definition_id,
            transaction_id=transaction_id,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_note_changed(
        self,
        event_type: AuditEventType,
        note_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.note_changed(event_type, note_id, correlation_id))

    async def log_validation_failed(
        self,
        entity_type: str,
        entity_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(operation, error_message, correlation_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    New ID shared by the events of one controller call.
    """
    return uuid4()
