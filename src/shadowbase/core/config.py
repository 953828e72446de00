"""Configuration management for ShadowBase.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded once per process
and is immutable during runtime. The ``history_*`` settings provide the
process-wide defaults for every ``attach_history`` call.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library configuration settings.

    Settings are loaded from environment variables and .env files.
    All configuration values are validated on first access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SHADOWBASE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "ShadowBase"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"

    # Database Settings
    database_url: str = "sqlite+aiosqlite:///./sb_data/shadowbase.db"
    db_echo: bool = False
    db_pool_timeout: int = 30

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # History Defaults
    history_blocking: bool = Field(
        default=True,
        description="Await snapshot writes as part of the triggering write",
    )
    history_full: bool = Field(
        default=False,
        description="Capture post-write state on every mutation kind",
    )
    history_model_suffix: str = "History"
    history_index_suffix: str = "_history"
    history_deleted_column_name: str = "history_deleted"
    history_add_associations: bool = False
    history_allow_transactions: bool = True

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept log levels in any case."""
        if isinstance(v, str):
            return v.upper()
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached settings instance.
    """
    return Settings()
