"""Validation package."""

from cepfinans.validation.duplicates import (
    is_duplicate_definition,
    is_duplicate_note,
    is_duplicate_transaction,
)
from cepfinans.validation.validator import (
    RecurringDefinitionValidator,
    TransactionValidator,
    get_user_friendly_summary,
)

__all__ = [
    "RecurringDefinitionValidator",
    "TransactionValidator",
    "get_user_friendly_summary",
    "is_duplicate_definition",
    "is_duplicate_note",
    "is_duplicate_transaction",
]
