"""
Core Data Models for CepFinans

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Money is Decimal, never float.
Transfers must conserve the total across accounts exactly,
which binary floats cannot promise.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountKind(str, Enum):
    """
    The three fixed account buckets.

    There is no way to add accounts: every balance snapshot
    always carries exactly these three.
    """
    CASH = "cash"
    BANK = "bank"
    SAVINGS = "savings"


class TransactionType(str, Enum):
    """Kind of money movement recorded by a transaction."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class RecurringType(str, Enum):
    """Recurring definitions never describe transfers."""
    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, Enum):
    """
    Recurrence frequency.

    CRITICAL: Only MONTHLY and YEARLY are evaluated by the schedule.
    DAILY, WEEKLY and CUSTOM can be stored (the edit form offers them)
    but are never marked due or materialized.
    """
    MONTHLY = "monthly"
    YEARLY = "yearly"
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


EVALUATED_FREQUENCIES = frozenset({Frequency.MONTHLY, Frequency.YEARLY})

# Transaction.date shadows the type inside the class body
CalendarDay = date


# =============================================================================
# BALANCES
# =============================================================================

class AccountBalances(BaseModel):
    """
    Current amount held in each account kind.

    Frozen: a new snapshot is produced for every change, so the
    previous snapshot can always be restored on rollback.
    Balances may go negative; nothing here enforces a floor.
    """
    model_config = ConfigDict(frozen=True)

    cash: Decimal = Field(default=Decimal("0"), description="Cash on hand")
    bank: Decimal = Field(default=Decimal("0"), description="Bank account")
    savings: Decimal = Field(default=Decimal("0"), description="Savings account")

    def get(self, account: AccountKind) -> Decimal:
        return getattr(self, AccountKind(account).value)

    def with_updates(self, updates: dict[AccountKind, Decimal]) -> "AccountBalances":
        """Return a copy with the given accounts replaced."""
        return self.model_copy(
            update={AccountKind(k).value: v for k, v in updates.items()}
        )

    @property
    def total(self) -> Decimal:
        return self.cash + self.bank + self.savings

    def as_dict(self) -> dict[str, str]:
        return {
            "cash": str(self.cash),
            "bank": str(self.bank),
            "savings": str(self.savings),
        }


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single recorded money movement.

    CRITICAL: Transactions are immutable once created.
    They are only ever appended to the log or deleted by the user.

    For transfers, `account` holds the source account and both
    `transfer_from` and `transfer_to` are required.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    type: TransactionType
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount moved (always positive)"
    )
    category: str = Field(
        ...,
        max_length=100,
        description="Free-text category label"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    date: datetime = Field(
        default_factory=datetime.now,
        description="When the transaction happened"
    )
    account: AccountKind

    transfer_from: Optional[AccountKind] = None
    transfer_to: Optional[AccountKind] = None

    # Set only on transactions materialized from a recurring definition
    is_recurring: bool = False
    recurring_id: Optional[UUID] = None

    @model_validator(mode='after')
    def validate_transfer_accounts(self) -> 'Transaction':
        if self.type == TransactionType.TRANSFER:
            if self.transfer_from is None or self.transfer_to is None:
                raise ValueError("Transfer requires both source and destination accounts")
            if self.transfer_from == self.transfer_to:
                raise ValueError("Transfer source and destination must differ")
        elif self.transfer_from is not None or self.transfer_to is not None:
            raise ValueError("Only transfers may set transfer accounts")
        return self

    @property
    def day(self) -> CalendarDay:
        """Calendar day of the transaction."""
        return self.date.date()


class RecurringDefinition(BaseModel):
    """
    A user-authored template for a transaction that repeats.

    The schedule only reads these; it never mutates them.
    `day_of_month` / `month_of_year` are optional at this level
    because the wider-frequency variant does not use them. The
    schedule rejects monthly/yearly definitions that lack them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    type: RecurringType
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    category: str = Field(..., max_length=100)
    description: str = Field(default="", max_length=500)
    account: AccountKind
    frequency: Frequency = Frequency.MONTHLY

    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    month_of_year: Optional[int] = Field(default=None, ge=1, le=12)
    day_of_week: Optional[int] = Field(
        default=None,
        ge=1,
        le=7,
        description="1=Monday .. 7=Sunday, weekly variant only"
    )
    custom_frequency: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Free-text period, custom variant only"
    )

    start_date: date = Field(default_factory=date.today)
    end_date: Optional[date] = None
    is_active: bool = True

    @model_validator(mode='after')
    def validate_dates(self) -> 'RecurringDefinition':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self

    @property
    def is_evaluated(self) -> bool:
        """Whether the schedule knows how to evaluate this frequency."""
        return self.frequency in EVALUATED_FREQUENCIES


# =============================================================================
# SCHEDULE RESULTS
# =============================================================================

class NextOccurrence(BaseModel):
    """Next date a recurring definition fires, relative to a given day."""
    model_config = ConfigDict(frozen=True)

    date: date
    days_until: int = Field(ge=0)


class UpcomingOccurrence(BaseModel):
    """One row of the "upcoming" list."""
    model_config = ConfigDict(frozen=True)

    definition: RecurringDefinition
    next_date: date
    days_until: int


# =============================================================================
# RESULT TYPES
# =============================================================================

class OperationResult(BaseModel):
    """
    Outcome of a controller mutation.

    A failure means the in-memory state was rolled back
    and `reason` says why.
    """

    success: bool
    reason: Optional[str] = None
    entity_id: Optional[UUID] = None

    @classmethod
    def ok(cls, entity_id: Optional[UUID] = None) -> "OperationResult":
        return cls(success=True, entity_id=entity_id)

    @classmethod
    def failure(cls, reason: str, entity_id: Optional[UUID] = None) -> "OperationResult":
        return cls(success=False, reason=reason, entity_id=entity_id)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'insufficient_funds', 'potential_duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (required fields, shape)
    Stage 2: Semantic validation (balances, duplicates, sanity checks)
    """

    entity_id: UUID = Field(
        ...,
        description="ID of the transaction or definition being validated"
    )
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[str]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue.message
        return None
