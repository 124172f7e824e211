"""
Audit Models for CepFinans

Each controller step (record, reconcile, roll back, materialize) emits
one AuditEvent. Events sharing a correlation ID belong to one user action,
so a rolled-back transfer can be read back as a single story.

DESIGN DECISION: Events are write-once. Storage only ever appends them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every controller mutation has its own event type.
    """
    # Setup
    INITIAL_SETUP_COMPLETED = "initial_setup_completed"

    # Transactions and balances
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSFER_RECORDED = "transfer_recorded"
    BALANCES_UPDATED = "balances_updated"
    STATE_ROLLED_BACK = "state_rolled_back"

    # Recurring definitions
    RECURRING_ADDED = "recurring_added"
    RECURRING_UPDATED = "recurring_updated"
    RECURRING_TOGGLED = "recurring_toggled"
    RECURRING_DELETED = "recurring_deleted"
    RECURRING_MATERIALIZED = "recurring_materialized"

    # Notes
    NOTE_ADDED = "note_added"
    NOTE_DELETED = "note_deleted"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """How loudly an event is logged."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    One row of the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Event ID"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="UTC time the event was built"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Subject of the event
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'recurring', 'balances')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="Transaction, definition or note ID"
    )

    # Shared by every event of one user action
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a transaction and its balance update)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Short summary shown in the audit sheet"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific payload (amounts, previous balances, issues)"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="False for events raised by materialization or the system"
    )

    def to_log_dict(self) -> dict:
        """
        Flatten to keyword arguments for structlog.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Flatten to one audit worksheet row.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Constructors for every event the controller emits.

    Usage:
        event = AuditEventBuilder.transaction_recorded(tx_id, "income", "150.00", "cash", cid)
        event = AuditEventBuilder.state_rolled_back("balances", reason, cid)
    """

    @staticmethod
    def initial_setup_completed(
        balances: dict[str, str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INITIAL_SETUP_COMPLETED,
            entity_type="balances",
            correlation_id=correlation_id,
            description="Initial account balances set",
            details={"balances": balances},
            is_user_action=True,
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: UUID,
        transaction_type: str,
        amount: str,
        account: str,
        correlation_id: UUID,
        is_recurring: bool = False,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.TRANSFER_RECORDED
            if transaction_type == "transfer"
            else AuditEventType.TRANSACTION_RECORDED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} recorded: {amount} ({account})",
            details={
                "type": transaction_type,
                "amount": amount,
                "account": account,
                "is_recurring": is_recurring,
            },
            is_user_action=not is_recurring,
        )

    @staticmethod
    def balances_updated(
        previous: dict[str, str],
        current: dict[str, str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_UPDATED,
            entity_type="balances",
            correlation_id=correlation_id,
            description="Account balances updated",
            details={
                "previous": previous,
                "current": current,
            },
        )

    @staticmethod
    def state_rolled_back(
        entity_type: str,
        reason: str,
        correlation_id: UUID,
        entity_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_ROLLED_BACK,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Optimistic {entity_type} update rolled back",
            error_message=reason,
            details={"reason": reason},
        )

    @staticmethod
    def recurring_changed(
        event_type: AuditEventType,
        definition_id: UUID,
        description: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="recurring",
            entity_id=definition_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def recurring_materialized(
        definition_id: UUID,
        transaction_id: UUID,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_MATERIALIZED,
            entity_type="recurring",
            entity_id=definition_id,
            correlation_id=correlation_id,
            description=f"Recurring transaction materialized: {amount}",
            details={
                "transaction_id": str(transaction_id),
                "amount": amount,
            },
        )

    @staticmethod
    def note_changed(
        event_type: AuditEventType,
        note_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        verb = "added" if event_type == AuditEventType.NOTE_ADDED else "deleted"
        return AuditEvent(
            event_type=event_type,
            entity_type="note",
            entity_id=note_id,
            correlation_id=correlation_id,
            description=f"Note {verb}",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        entity_id: UUID,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
