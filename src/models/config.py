"""Application configuration model using pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_path: str = "data/monitors.db"
    log_level: str = "INFO"
    templates_dir: str = "templates"
    providers_file: str | None = None
    max_workers: int = 5
    change_window_days: int = 7
    default_interval: int = 60
    fetch_timeout: float = 30.0
    max_retry_attempts: int = 2
    user_agent: str = "content-monitor/0.1"

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, value: str) -> str:
        """Ensure parent directory exists, creating it if necessary."""
        parent = Path(value).parent
        parent.mkdir(parents=True, exist_ok=True)
        return value

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

    @field_validator("providers_file")
    @classmethod
    def validate_providers_file(cls, value: str | None) -> str | None:
        """An empty providers file setting means none."""
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, value: int) -> int:
        """Worker count must be between 1 and 32."""
        if value < 1 or value > 32:
            msg = "max_workers must be between 1 and 32"
            raise ValueError(msg)
        return value

    @field_validator("change_window_days", "default_interval")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            msg = "value must be at least 1"
            raise ValueError(msg)
        return value

    @field_validator("fetch_timeout")
    @classmethod
    def validate_fetch_timeout(cls, value: float) -> float:
        """Fetch timeout must be positive."""
        if value <= 0:
            msg = "fetch_timeout must be greater than 0"
            raise ValueError(msg)
        return value

    @field_validator("max_retry_attempts")
    @classmethod
    def validate_max_retry_attempts(cls, value: int) -> int:
        """Max retry attempts must be between 0 and 5."""
        if value < 0 or value > 5:
            msg = "max_retry_attempts must be between 0 and 5"
            raise ValueError(msg)
        return value
