"""
Recurring Materialization

Turns recurring definitions that are due today into concrete
transactions.

The same-day check keys on (recurring_id, calendar day of the
transaction). Re-running on the same day with the materialized
transactions already in the log produces nothing new. This is a
heuristic, not an idempotency token: a user deleting today's
materialized transaction will see it re-created on the next run.
"""

from datetime import date, datetime, time
from typing import Iterable, Sequence

from cepfinans.engine.schedule import is_due_today
from cepfinans.models.finance import (
    RecurringDefinition,
    Transaction,
    TransactionType,
)


def already_materialized(
    definition: RecurringDefinition,
    transactions: Iterable[Transaction],
    today: date,
) -> bool:
    """Check whether the log already holds today's transaction for `definition`."""
    return any(
        tx.recurring_id == definition.id and tx.day == today
        for tx in transactions
    )


def build_recurring_transaction(
    definition: RecurringDefinition,
    today: date,
    suffix: str,
) -> Transaction:
    """Synthesize the transaction a definition produces on `today`."""
    description = f"{definition.description} {suffix}".strip()
    return Transaction(
        type=TransactionType(definition.type.value),
        amount=definition.amount,
        category=definition.category,
        description=description,
        date=datetime.combine(today, time.min),
        account=definition.account,
        is_recurring=True,
        recurring_id=definition.id,
    )


def materialize_due(
    definitions: Iterable[RecurringDefinition],
    transactions: Sequence[Transaction],
    today: date,
    suffix: str = "(Otomatik)",
) -> list[Transaction]:
    """
    Build one transaction per active definition that is due today
    and not yet in the log.

    Raises:
        InvalidDefinitionError: an active monthly/yearly definition
            is missing its day fields
    """
    created = []
    for definition in definitions:
        if not is_due_today(definition, today):
            continue
        if already_materialized(definition, transactions, today):
            continue
        created.append(build_recurring_transaction(definition, today, suffix))
    return created
