"""
Configuration Management for the Dues Ledger

Each concern is a pydantic-settings class with its own env prefix
(LEDGER_, GOOGLE_SHEETS_), read from the environment or a .env file.

The week epoch in particular lives here and nowhere else: changing it
renumbers every historical week, so it must be set once before any
payment is recorded and never touched again.
"""

from datetime import date
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MEMBER_PHOTO = "https://iili.io/JxpKsce.png"


class LedgerSettings(BaseSettings):
    """Core ledger rules: week epoch, currency and write policies."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    epoch_date: date = Field(
        default=date(2025, 6, 1),
        description="Date of the first day of week 1"
    )
    organization_name: str = Field(
        default="Dues Ledger",
        description="Organization name printed on reports"
    )
    default_member_photo: str = Field(
        default=DEFAULT_MEMBER_PHOTO,
        description="Placeholder photo URI for members without one"
    )
    currency_code: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
    )
    currency_symbol: str = Field(
        default="₹",
    )

    # Write policies
    strict_amounts: bool = Field(
        default=False,
        description="Reject non-positive amounts instead of warning about them"
    )
    upsert_policy: str = Field(
        default="replace",
        pattern="^(replace|strict)$",
        description="replace: latest payment for a week wins; strict: raise ConflictError"
    )
    expense_week_scheme: str = Field(
        default="day_of_year",
        pattern="^(day_of_year|epoch)$",
        description="How expenses are bucketed into weeks for the weekly breakdown"
    )
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage implementation the service uses"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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
    members_sheet_name: str = Field(default="Members")
    payments_sheet_name: str = Field(default="Payments")
    expenses_sheet_name: str = Field(default="Expenses")
    donations_sheet_name: str = Field(default="Donations")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
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
    """Runtime environment and log level (no prefix: APP_ENVIRONMENT, LOG_LEVEL)."""

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
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )


class Settings(BaseSettings):
    """One handle on every settings section."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a missing Google Sheets
    # configuration does not block in-memory use.

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
    """Process-wide settings. Tests call get_settings.cache_clear() after changing the environment."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try loading every settings section.

    Returns {section: loaded_ok} plus a "<section>_error" message for each
    section that failed, for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "ledger": lambda: settings.ledger,
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }
    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
