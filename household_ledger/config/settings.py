"""
Configuration Management for the Household Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All tunable business rules live here (minimum payment
formula, alert windows, usage thresholds, closing-day policy).
Services read them from one place instead of hard-coding constants.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClosingDayOverflow(str, Enum):
    """
    What to do when a card's closing day does not exist in a month
    (e.g. closing day 31 in February).
    """
    REJECT = "reject"  # Raise ValidationError naming the month
    CLAMP = "clamp"    # Use the month's last day


class LedgerSettings(BaseSettings):
    """Business rules for statements, payments and alerts."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    # Minimum payment = max(current_balance * rate, floor)
    minimum_payment_rate: Decimal = Field(
        default=Decimal("0.05"),
        gt=0,
        le=1,
        description="Share of the statement balance due as minimum payment"
    )
    minimum_payment_floor: Decimal = Field(
        default=Decimal("20"),
        ge=0,
        description="Lowest minimum payment"
    )

    closing_day_overflow: ClosingDayOverflow = Field(
        default=ClosingDayOverflow.REJECT,
        description="Policy for closing days past a month's end"
    )

    # Notification windows
    due_notification_days: int = Field(
        default=7,
        ge=0,
        le=60,
        description="Days ahead to warn about due dates"
    )
    closing_notification_days: int = Field(
        default=3,
        ge=0,
        le=31,
        description="Days ahead to warn about statement closing"
    )
    usage_warning_pct: float = Field(
        default=70.0,
        gt=0,
        le=100,
        description="Credit usage percentage that raises a warning"
    )
    usage_critical_pct: float = Field(
        default=90.0,
        gt=0,
        le=100,
        description="Credit usage percentage that raises a critical alert"
    )

    # Categories auto-created for payment transactions
    payment_category_name: str = Field(
        default="Credit Card Payment",
        min_length=1,
        max_length=30,
        description="Expense category for the funding-wallet debit"
    )
    payment_received_category_name: str = Field(
        default="Payment Received",
        min_length=1,
        max_length=30,
        description="Income category for the card-wallet credit"
    )

    @model_validator(mode="after")
    def validate_thresholds(self) -> "LedgerSettings":
        """Warning threshold must sit below the critical one."""
        if self.usage_warning_pct >= self.usage_critical_pct:
            raise ValueError("usage_warning_pct must be lower than usage_critical_pct")
        return self


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
    worksheet_prefix: str = Field(
        default="",
        description="Prefix for per-collection worksheet names"
    )

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
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Record storage backend"
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
