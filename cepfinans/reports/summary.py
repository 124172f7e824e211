"""
Dashboard Reports

DESIGN DECISION: Reports are DETERMINISTIC and read-only.
They are computed from the controller's current state on demand
and never stored, so they can't drift from the underlying data.

Transfers move money between the user's own accounts and are
excluded from income/expense totals.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable

from cepfinans.engine.schedule import normalized_date
from cepfinans.models.finance import (
    AccountBalances,
    RecurringDefinition,
    RecurringType,
    Transaction,
    TransactionType,
)
from cepfinans.models.note import Note, NoteFilter
from cepfinans.models.report import DailyTotals, FinanceSummary, MonthlyTotals


def _sum_type(transactions: Iterable[Transaction], tx_type: TransactionType) -> Decimal:
    return sum((tx.amount for tx in transactions if tx.type == tx_type), Decimal("0"))


def compute_summary(
    balances: AccountBalances,
    transactions: Iterable[Transaction],
    definitions: Iterable[RecurringDefinition],
) -> FinanceSummary:
    """
    Build the headline dashboard figures.

    "Monthly" recurring totals add up every active definition's amount
    as-is, whatever its frequency.
    """
    transactions = list(transactions)
    active = [d for d in definitions if d.is_active]
    income_defs = [d for d in active if d.type == RecurringType.INCOME]
    expense_defs = [d for d in active if d.type == RecurringType.EXPENSE]

    return FinanceSummary(
        balances=balances,
        total_balance=balances.total,
        total_income=_sum_type(transactions, TransactionType.INCOME),
        total_expense=_sum_type(transactions, TransactionType.EXPENSE),
        monthly_recurring_income=sum((d.amount for d in income_defs), Decimal("0")),
        monthly_recurring_expense=sum((d.amount for d in expense_defs), Decimal("0")),
        active_income_count=len(income_defs),
        active_expense_count=len(expense_defs),
    )


def monthly_breakdown(
    transactions: Iterable[Transaction],
    today: date,
    months: int = 6,
) -> list[MonthlyTotals]:
    """Income/expense per calendar month for the last `months` months, oldest first."""
    buckets: dict[tuple[int, int], list[Transaction]] = defaultdict(list)
    for tx in transactions:
        buckets[(tx.date.year, tx.date.month)].append(tx)

    result = []
    for offset in range(months - 1, -1, -1):
        first_day = normalized_date(today.year, today.month - offset, 1)
        month_txs = buckets.get((first_day.year, first_day.month), [])
        result.append(MonthlyTotals(
            year=first_day.year,
            month=first_day.month,
            income=_sum_type(month_txs, TransactionType.INCOME),
            expense=_sum_type(month_txs, TransactionType.EXPENSE),
        ))
    return result


def daily_report(transactions: Iterable[Transaction]) -> list[DailyTotals]:
    """Group transactions by calendar day, newest day first."""
    by_day: dict[date, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        by_day[tx.day].append(tx)

    return [
        DailyTotals(
            day=day,
            transactions=by_day[day],
            income=_sum_type(by_day[day], TransactionType.INCOME),
            expense=_sum_type(by_day[day], TransactionType.EXPENSE),
        )
        for day in sorted(by_day, reverse=True)
    ]


def filter_notes(notes: Iterable[Note], note_filter: NoteFilter, today: date) -> list[Note]:
    """
    Filter notes by date window.

    WEEK and MONTH look forward from today, both ends inclusive.
    """
    note_filter = NoteFilter(note_filter)

    if note_filter == NoteFilter.TODAY:
        return [n for n in notes if n.date == today]
    if note_filter == NoteFilter.WEEK:
        end = normalized_date(today.year, today.month, today.day + 7)
        return [n for n in notes if today <= n.date <= end]
    if note_filter == NoteFilter.MONTH:
        end = normalized_date(today.year, today.month + 1, today.day)
        return [n for n in notes if today <= n.date <= end]
    return list(notes)
