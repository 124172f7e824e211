"""
Recurring Schedule Evaluator

Decides whether a recurring definition is due on a given day and
computes its next occurrence.

DESIGN DECISION: Everything here is a pure function of
(definition, today). Nothing reads the clock, nothing mutates
the definition, and the "upcoming" list is recomputed on every call.

Only MONTHLY and YEARLY have rules. Definitions using any other
frequency are never due and have no next occurrence.

CALENDAR NORMALIZATION: dates are built the way the app always
built them - a month past December rolls the year forward, and a day
past the end of the month rolls into the following month (day 31 in
April is May 1st). This is intentional and covered by tests.
"""

from datetime import date, timedelta
from typing import Iterable

import structlog

from cepfinans.engine.errors import InvalidDefinitionError, UnsupportedFrequencyError
from cepfinans.models.finance import (
    Frequency,
    NextOccurrence,
    RecurringDefinition,
    UpcomingOccurrence,
)


logger = structlog.get_logger(__name__)


def normalized_date(year: int, month: int, day: int) -> date:
    """
    Build a date, rolling overflowing months and days forward.

    `month` is 1-based and may exceed 12; `day` may exceed the
    length of the month.
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return date(year, month, 1) + timedelta(days=day - 1)


def _require_fields(definition: RecurringDefinition) -> None:
    if definition.frequency == Frequency.MONTHLY:
        if definition.day_of_month is None:
            raise InvalidDefinitionError(
                definition.id, "monthly definition requires day_of_month"
            )
    elif definition.frequency == Frequency.YEARLY:
        if definition.day_of_month is None or definition.month_of_year is None:
            raise InvalidDefinitionError(
                definition.id,
                "yearly definition requires day_of_month and month_of_year",
            )


def is_due_today(definition: RecurringDefinition, today: date) -> bool:
    """
    Check whether the definition fires on `today`.

    Inactive definitions and unevaluated frequencies are never due.

    Raises:
        InvalidDefinitionError: monthly/yearly definition missing its day fields
    """
    if not definition.is_active:
        return False

    _require_fields(definition)

    if definition.frequency == Frequency.MONTHLY:
        return today.day == definition.day_of_month
    if definition.frequency == Frequency.YEARLY:
        return (
            today.month == definition.month_of_year
            and today.day == definition.day_of_month
        )
    return False


def next_occurrence(definition: RecurringDefinition, today: date) -> NextOccurrence:
    """
    Compute the next date the definition fires after `today`.

    A definition whose day is today rolls to the next period:
    the comparison is strictly "later this period".

    Raises:
        InvalidDefinitionError: monthly/yearly definition missing its day fields
        UnsupportedFrequencyError: daily, weekly or custom definition
    """
    _require_fields(definition)
    dom = definition.day_of_month

    if definition.frequency == Frequency.MONTHLY:
        if dom > today.day:
            next_date = normalized_date(today.year, today.month, dom)
        else:
            next_date = normalized_date(today.year, today.month + 1, dom)

    elif definition.frequency == Frequency.YEARLY:
        moy = definition.month_of_year
        later_this_year = moy > today.month or (moy == today.month and dom > today.day)
        year = today.year if later_this_year else today.year + 1
        next_date = normalized_date(year, moy, dom)

    else:
        raise UnsupportedFrequencyError(definition.id, definition.frequency.value)

    return NextOccurrence(date=next_date, days_until=(next_date - today).days)


def upcoming(
    definitions: Iterable[RecurringDefinition],
    today: date,
) -> list[UpcomingOccurrence]:
    """
    List the next occurrence of every active definition, soonest first.

    Ties keep input order. Definitions with unevaluated frequencies
    are skipped (and logged) rather than failing the whole list.
    """
    result = []
    for definition in definitions:
        if not definition.is_active:
            continue
        try:
            occurrence = next_occurrence(definition, today)
        except UnsupportedFrequencyError as e:
            logger.warning(
                "recurring_frequency_not_evaluated",
                definition_id=str(definition.id),
                frequency=e.frequency,
            )
            continue
        result.append(UpcomingOccurrence(
            definition=definition,
            next_date=occurrence.date,
            days_until=occurrence.days_until,
        ))

    # list.sort is stable
    result.sort(key=lambda item: item.days_until)
    return result
