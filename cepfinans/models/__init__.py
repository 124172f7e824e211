"""
Data Models Package

This package contains all Pydantic models used in CepFinans.
All data flowing through the system must conform to these schemas.
"""

from cepfinans.models.finance import (
    EVALUATED_FREQUENCIES,
    AccountBalances,
    AccountKind,
    Frequency,
    NextOccurrence,
    OperationResult,
    RecurringDefinition,
    RecurringType,
    Transaction,
    TransactionType,
    UpcomingOccurrence,
    ValidationIssue,
    ValidationResult,
)
from cepfinans.models.note import Note, NoteFilter
from cepfinans.models.report import DailyTotals, FinanceSummary, MonthlyTotals
from cepfinans.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "EVALUATED_FREQUENCIES",
    "AccountBalances",
    "AccountKind",
    "Frequency",
    "NextOccurrence",
    "OperationResult",
    "RecurringDefinition",
    "RecurringType",
    "Transaction",
    "TransactionType",
    "UpcomingOccurrence",
    "ValidationIssue",
    "ValidationResult",
    # Notes
    "Note",
    "NoteFilter",
    # Reports
    "DailyTotals",
    "FinanceSummary",
    "MonthlyTotals",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
