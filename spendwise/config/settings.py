"""
Configuration Management for SpendWise

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see where the ledger keeps its data and which
defaults shape its behaviour.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Where and under which keys the four ledger blobs are persisted."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDWISE_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="file",
        pattern="^(file|memory)$",
        description="Blob storage backend"
    )
    data_dir: Path = Field(
        default=Path("~/.spendwise"),
        description="Directory holding one file per blob (file backend)"
    )

    # Blob keys
    expenses_key: str = Field(default="spendwise-expenses", min_length=1)
    recurring_key: str = Field(default="spendwise-recurring", min_length=1)
    categories_key: str = Field(default="spendwise-custom-categories", min_length=1)
    budget_key: str = Field(default="spendwise-budget", min_length=1)

    @field_validator('data_dir')
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        return v.expanduser()

    @property
    def all_keys(self) -> list[str]:
        return [
            self.expenses_key,
            self.recurring_key,
            self.categories_key,
            self.budget_key,
        ]


class LedgerSettings(BaseSettings):
    """Defaults that shape ledger behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDWISE_",
        extra="ignore"
    )

    default_budget: Decimal = Field(
        default=Decimal("50000"),
        ge=0,
        description="Budget used until the user sets one"
    )
    recurring_marker: str = Field(
        default="(Recurring)",
        min_length=1,
        description="Suffix appended to generated instance descriptions"
    )
    trailing_window_days: int = Field(
        default=30,
        ge=1,
        le=366,
        description="Length of the trailing window used by summaries"
    )
    max_transaction_amount: Decimal = Field(
        default=Decimal("10000000"),
        gt=0,
        description="Amounts above this are accepted with a warning"
    )


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
        description="Minimum level for local structured logs"
    )

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v


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

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

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

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries describing failures.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "ledger", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
