"""Pure domain logic: schedule, reconciliation and materialization."""

from cepfinans.engine.errors import InvalidDefinitionError, UnsupportedFrequencyError
from cepfinans.engine.materializer import (
    already_materialized,
    build_recurring_transaction,
    materialize_due,
)
from cepfinans.engine.reconciler import apply_transaction
from cepfinans.engine.schedule import (
    is_due_today,
    next_occurrence,
    normalized_date,
    upcoming,
)

__all__ = [
    "InvalidDefinitionError",
    "UnsupportedFrequencyError",
    "already_materialized",
    "apply_transaction",
    "build_recurring_transaction",
    "is_due_today",
    "materialize_due",
    "next_occurrence",
    "normalized_date",
    "upcoming",
]
