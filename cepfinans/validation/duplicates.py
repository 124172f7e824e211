"""
Duplicate Detection

DESIGN DECISION: Duplicates are detected by field equality, not by an
idempotency key. Stored data from the original app only carries these
fields, so this stays compatible with it.

Consequence: two genuinely separate expenses with the same type,
amount, category, account and timestamp are treated as one. The
recurring_id is part of the key, so entries materialized from two
different definitions on the same day never collide.
"""

from typing import Iterable

from cepfinans.models.finance import RecurringDefinition, Transaction
from cepfinans.models.note import Note


def _transaction_key(tx: Transaction) -> tuple:
    return (tx.type, tx.amount, tx.category, tx.account, tx.date, tx.recurring_id)


def _definition_key(definition: RecurringDefinition) -> tuple:
    return (
        definition.type,
        definition.amount,
        definition.category,
        definition.account,
        definition.frequency,
        definition.day_of_month,
        definition.start_date,
    )


def is_duplicate_transaction(candidate: Transaction, existing: Iterable[Transaction]) -> bool:
    key = _transaction_key(candidate)
    return any(
        tx.id == candidate.id or _transaction_key(tx) == key
        for tx in existing
    )


def is_duplicate_definition(
    candidate: RecurringDefinition,
    existing: Iterable[RecurringDefinition],
) -> bool:
    key = _definition_key(candidate)
    return any(
        d.id == candidate.id or _definition_key(d) == key
        for d in existing
    )


def is_duplicate_note(candidate: Note, existing: Iterable[Note]) -> bool:
    return any(
        n.id == candidate.id
        or (n.content == candidate.content and n.created_at == candidate.created_at)
        for n in existing
    )
