"""
Configuration Management for Recurring Cycles

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Engine tolerances, storage location and retry behaviour are all read
from the environment (or .env) and validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from recurring_cycles.models.cycle import MatchingPolicy
from recurring_cycles.models.recurrence import RecurrenceNature


class CycleEngineSettings(BaseSettings):
    """Cycle generation and matching configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CYCLES_",
        extra="ignore"
    )

    default_max_cycles: int = Field(
        default=12,
        ge=1,
        le=1000,
        description="Cap on generated cycles when the caller does not pass one"
    )
    date_tolerance_days: int = Field(
        default=7,
        ge=0,
        le=60,
        description="Activity within +/- this many days of a due date can match"
    )

    # Amount bands, relative to the expected amount
    subscription_amount_tolerance: Decimal = Field(default=Decimal("0.05"), ge=0, le=1)
    bill_amount_tolerance: Decimal = Field(default=Decimal("0.30"), ge=0, le=1)
    income_amount_tolerance: Decimal = Field(default=Decimal("0.10"), ge=0, le=1)
    other_amount_tolerance: Decimal = Field(default=Decimal("0.10"), ge=0, le=1)

    strict_frequency_units: bool = Field(
        default=False,
        description="Reject unknown frequency units instead of falling back to monthly"
    )
    bill_lead_days: int = Field(
        default=3,
        ge=0,
        description="How many days before a due date a cycle needs its bill"
    )

    def matching_policy(self) -> MatchingPolicy:
        """Build the matcher's policy from these settings."""
        return MatchingPolicy(
            date_tolerance_days=self.date_tolerance_days,
            amount_tolerances={
                RecurrenceNature.SUBSCRIPTION: self.subscription_amount_tolerance,
                RecurrenceNature.BILL: self.bill_amount_tolerance,
                RecurrenceNature.INCOME: self.income_amount_tolerance,
                RecurrenceNature.OTHER: self.other_amount_tolerance,
            },
        )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    recurrences_sheet_name: str = Field(default="Recurrences")
    transactions_sheet_name: str = Field(default="Transactions")
    scheduled_payments_sheet_name: str = Field(default="ScheduledPayments")
    bills_sheet_name: str = Field(default="Bills")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Activity fetch retries (transactions, scheduled payments, bills)
    fetch_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per activity source before degrading to an empty list"
    )
    fetch_retry_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=30.0,
        description="Base wait for exponential backoff between attempts"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Loaded lazily to allow partial configuration

    @property
    def engine(self) -> CycleEngineSettings:
        return CycleEngineSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus {name}_error entries.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("engine", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
