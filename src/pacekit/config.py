"""Configuration management for pacekit."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings loaded from ``PACEKIT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PACEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="",
    )

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Logging Configuration
    log_to_file: bool = Field(default=False, description="Enable file-based logging")
    log_directory: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10485760,  # 10MB
        description="Max size per log file before rotation",
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of rotated log files to keep"
    )
    log_file_prefix: str = Field(default="pacekit", description="Prefix for log file names")

    # Queuer defaults
    queuer_started: bool = Field(
        default=True, description="Whether new queuers start processing immediately"
    )
    queuer_max_tracked_keys: int = Field(
        default=1000, description="Processed keys remembered for cross-execution dedup"
    )
    queuer_default_concurrency: int = Field(
        default=1, description="Default concurrency ceiling for async queuers"
    )
    queuer_default_wait_ms: float = Field(
        default=0, description="Default delay between scheduler ticks (ms)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate the log level name."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got: {v}")
        return v.upper()

    @field_validator("queuer_max_tracked_keys", "queuer_default_concurrency")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate counts are at least 1."""
        if v < 1:
            raise ValueError(f"Value must be at least 1, got: {v}")
        return v

    @field_validator("queuer_default_wait_ms")
    @classmethod
    def validate_wait(cls, v: float) -> float:
        """Validate the default wait is not negative."""
        if v < 0:
            raise ValueError(f"queuer_default_wait_ms must be >= 0, got: {v}")
        return v

    @property
    def log_file_path(self) -> str:
        """Get the full log file path."""
        return f"{self.log_directory}/{self.log_file_prefix}.log"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
