"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence for the chosen type/frequency
- This catches records the engine cannot evaluate

STAGE 2 - SEMANTIC VALIDATION:
- Insufficient funds for transfers
- Absurd amount detection
- Future date detection
- Duplicate detection
- Frequencies the schedule will never fire

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails

IMPORTANT: Validation NEVER silently fixes issues.
It reports them and the controller decides.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from cepfinans.config import AppSettings, get_settings
from cepfinans.models.finance import (
    AccountBalances,
    Frequency,
    RecurringDefinition,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from cepfinans.validation.duplicates import (
    is_duplicate_definition,
    is_duplicate_transaction,
)


def _build_result(
    entity_id,
    schema_valid: bool,
    semantic_valid: bool,
    issues: list[ValidationIssue],
) -> ValidationResult:
    warnings = [issue.message for issue in issues if issue.severity == "warning"]
    return ValidationResult(
        entity_id=entity_id,
        schema_valid=schema_valid,
        semantic_valid=semantic_valid,
        is_valid=schema_valid and semantic_valid,
        issues=issues,
        warnings=warnings,
    )


class TransactionValidator:
    """
    Validates a transaction before it is recorded.

    Stage 1: Schema validation
    Stage 2: Semantic validation (needs current balances and the log)
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        transaction: Transaction,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if not transaction.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
                suggested_fix="Pick or type a category",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        transaction: Transaction,
        balances: AccountBalances,
        existing: list[Transaction],
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        # Transfers may not overdraw the source account
        if transaction.type == TransactionType.TRANSFER:
            available = balances.get(transaction.transfer_from)
            if transaction.amount > available:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="insufficient_funds",
                    message=(
                        f"Transfer of {transaction.amount} exceeds the "
                        f"{transaction.transfer_from.value} balance ({available})"
                    ),
                    severity="error",
                    suggested_fix="Lower the amount or transfer from another account",
                ))

        if transaction.amount > self._settings.max_transaction_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({transaction.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        max_future = datetime.now() + timedelta(days=self._settings.future_date_tolerance_days)
        if transaction.date > max_future:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Transaction date ({transaction.date.date()}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if is_duplicate_transaction(transaction, existing):
            issues.append(ValidationIssue(
                field="duplicate",
                issue_type="potential_duplicate",
                message="An identical transaction is already recorded",
                severity="error",
                suggested_fix="Check the transaction list before adding it again",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        transaction: Transaction,
        balances: AccountBalances,
        existing: Iterable[Transaction] = (),
    ) -> ValidationResult:
        """Run full two-stage validation."""
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(transaction)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                transaction, balances, list(existing)
            )
            all_issues.extend(semantic_issues)

        return _build_result(transaction.id, schema_valid, semantic_valid, all_issues)


class RecurringDefinitionValidator:
    """Validates a recurring definition before it is stored."""

    def _validate_schema(
        self,
        definition: RecurringDefinition,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []
        frequency = definition.frequency

        if not definition.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))

        if frequency in (Frequency.MONTHLY, Frequency.YEARLY) and definition.day_of_month is None:
            issues.append(ValidationIssue(
                field="day_of_month",
                issue_type="missing",
                message=f"A {frequency.value} definition needs a day of the month",
                severity="error",
                suggested_fix="Choose a day between 1 and 31",
            ))

        if frequency == Frequency.YEARLY and definition.month_of_year is None:
            issues.append(ValidationIssue(
                field="month_of_year",
                issue_type="missing",
                message="A yearly definition needs a month",
                severity="error",
                suggested_fix="Choose a month between 1 and 12",
            ))

        if frequency == Frequency.CUSTOM and not (definition.custom_frequency or "").strip():
            issues.append(ValidationIssue(
                field="custom_frequency",
                issue_type="missing",
                message="A custom period needs a description",
                severity="error",
            ))

        if frequency == Frequency.WEEKLY and definition.day_of_week is None:
            issues.append(ValidationIssue(
                field="day_of_week",
                issue_type="missing",
                message="A weekly definition should name a day of the week",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        definition: RecurringDefinition,
        existing: list[RecurringDefinition],
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if not definition.is_evaluated:
            issues.append(ValidationIssue(
                field="frequency",
                issue_type="not_evaluated",
                message=(
                    f"'{definition.frequency.value}' definitions are stored but "
                    "never applied automatically"
                ),
                severity="warning",
                suggested_fix="Use a monthly or yearly frequency for automatic entries",
            ))

        if (
            definition.is_evaluated
            and definition.day_of_month is not None
            and definition.day_of_month > 28
        ):
            issues.append(ValidationIssue(
                field="day_of_month",
                issue_type="short_month",
                message=(
                    f"Day {definition.day_of_month} does not exist in every month; "
                    "in shorter months the date rolls into the following month"
                ),
                severity="warning",
            ))

        others = [d for d in existing if d.id != definition.id]
        if is_duplicate_definition(definition, others):
            issues.append(ValidationIssue(
                field="duplicate",
                issue_type="potential_duplicate",
                message="An identical recurring transaction already exists",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        definition: RecurringDefinition,
        existing: Iterable[RecurringDefinition] = (),
    ) -> ValidationResult:
        """Run full two-stage validation."""
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(definition)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                definition, list(existing)
            )
            all_issues.extend(semantic_issues)

        return _build_result(definition.id, schema_valid, semantic_valid, all_issues)


def get_user_friendly_summary(result: ValidationResult) -> str:
    """
    Generate a user-friendly summary of validation results.

    This is what we show next to the form.
    """
    if result.is_valid and not result.warnings:
        return "✅ All checks passed!"

    lines = []

    errors = [issue for issue in result.issues if issue.severity == "error"]
    if errors:
        lines.append("❌ Please fix the following:")
        for issue in errors:
            lines.append(f"   • {issue.message}")
            if issue.suggested_fix:
                lines.append(f"     💡 {issue.suggested_fix}")

    if result.warnings:
        if lines:
            lines.append("")
        lines.append("⚠️ Please verify the following:")
        for warning in result.warnings:
            lines.append(f"   • {warning}")

    return "\n".join(lines)
