"""
Configuration Management for CepFinans

Settings come from environment variables (and an optional .env file)
through pydantic-settings.

DESIGN DECISION: The in-memory backend needs no configuration at all.
Google Sheets credentials are only read when that backend is selected,
so a fresh checkout runs without any environment set up.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Credentials and worksheet names for the Google Sheets backend."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file used to open the spreadsheet"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Key of the spreadsheet holding the finance data"
    )

    # Worksheet names within the spreadsheet, one per data type
    balances_sheet_name: str = Field(
        default="Balances",
        description="Name of the sheet holding the account balances"
    )
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    recurring_sheet_name: str = Field(
        default="RecurringTransactions",
        description="Name of the sheet for recurring transaction definitions"
    )
    notes_sheet_name: str = Field(
        default="Notes",
        description="Name of the sheet for notes"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet receiving audit events"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Only warn on a missing key file; it may be mounted after startup."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account key not found at {v}; "
                "Sheets calls will fail until it is present."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Behaviour switches for the controller, validators and reports.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Storage backend
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage implementation to use"
    )

    # Recurring transactions
    recurring_description_suffix: str = Field(
        default="(Otomatik)",
        description="Marker appended to the description of materialized transactions"
    )
    transfer_category: str = Field(
        default="Transfer",
        description="Category used for transfers between accounts"
    )

    # Validation thresholds
    max_transaction_amount: Decimal = Field(
        default=Decimal("1000000"),
        gt=0,
        description="Maximum reasonable transaction amount (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a transaction date can be"
    )

    # Reports
    monthly_breakdown_months: int = Field(
        default=6,
        ge=1,
        le=36,
        description="How many months the income/expense breakdown covers"
    )

    @property
    def uses_google_sheets(self) -> bool:
        return self.storage_backend == "google_sheets"


class Settings(BaseSettings):
    """
    Root settings container.

    Groups the settings sections behind one cached object.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sections are built on access so the Sheets section can stay unset

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Return the process-wide settings object.

    Cached; tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Check which settings sections load.

    Maps each section name to True/False, with an `<name>_error` entry on failure.
    Google Sheets settings are only checked when that backend is selected.
    """
    results = {}

    settings = get_settings()

    try:
        app = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)
        return results

    if app.uses_google_sheets:
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
