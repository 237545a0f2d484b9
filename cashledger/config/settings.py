"""
Configuration Management for Cash Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which knobs exist and ensures all
required configuration is validated at startup.
"""

import warnings
from datetime import timedelta, tzinfo
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger computation and validation settings."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    timezone: str = Field(
        default="UTC",
        description="IANA zone used for calendar days and budget months"
    )

    # Idempotency guard of the recurring engine
    daily_min_interval_hours: float = Field(
        default=12.0,
        gt=0,
        description="Minimum spacing between two generations of a daily rule"
    )
    default_min_interval_hours: float = Field(
        default=24.0,
        gt=0,
        description="Minimum spacing between two generations of any other rule"
    )

    # Balance history
    default_history_days: int = Field(
        default=30,
        ge=0,
        le=3660,
        description="History window when the caller does not give one"
    )
    forecast_days: int = Field(
        default=15,
        ge=0,
        le=365,
        description="Number of projected days after the last history point"
    )

    # Validation limits for user-entered values
    min_amount: float = Field(default=0.01, gt=0)
    max_amount: float = Field(default=999_999_999.0, gt=0)
    max_name_length: int = Field(default=100, ge=1)
    max_description_length: int = Field(default=500, ge=1)

    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Record store implementation to use"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def tzinfo(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    @property
    def daily_min_interval(self) -> timedelta:
        return timedelta(hours=self.daily_min_interval_hours)

    @property
    def default_min_interval(self) -> timedelta:
        return timedelta(hours=self.default_min_interval_hours)


class SchedulerSettings(BaseSettings):
    """Daily timer that drives the recurring schedule engine."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Start the daily trigger with the application"
    )
    run_hour_utc: int = Field(default=0, ge=0, le=23)
    run_minute_utc: int = Field(default=0, ge=0, le=59)


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

    # One worksheet per record kind is named "<prefix><record_kind>"
    worksheet_prefix: str = Field(
        default="",
        description="Prefix prepended to every record worksheet name"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
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
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level of local structured logs"
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
    def scheduler(self) -> SchedulerSettings:
        return SchedulerSettings()

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

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    sections = {
        "ledger": lambda: settings.ledger,
        "scheduler": lambda: settings.scheduler,
        "app": lambda: settings.app,
        "google_sheets": lambda: settings.google_sheets,
    }

    for name, load in sections.items():
        if name == "google_sheets" and not (
            results.get("ledger")
            and settings.ledger.storage_backend == "google_sheets"
        ):
            continue
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
