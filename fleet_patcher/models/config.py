"""Application configuration model using pydantic-settings."""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Process-level settings loaded from environment variables and .env file.

    Inventory and run settings live in the JSON configuration document;
    this model only covers how the tool itself behaves.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLEET_PATCHER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "WARNING"
    config_path: str = "servers.json"
    log_dir: str | None = None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Log level must be a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            msg = f"log_level must be one of {', '.join(sorted(valid_levels))}"
            raise ValueError(msg)
        return upper_value

    @field_validator("config_path")
    @classmethod
    def validate_config_path(cls, value: str) -> str:
        """Config path must be non-empty."""
        if not value.strip():
            msg = "config_path must not be empty"
            raise ValueError(msg)
        return value
