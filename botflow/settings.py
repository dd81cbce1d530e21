"""Application settings using pydantic-settings.

Loads configuration from environment variables (``BOTFLOW_`` prefix)
with .env file support.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BOTFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production", "testing"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Level for botflow loggers",
    )

    # Persistence
    store_path: Path = Field(
        default=Path("workflows"),
        description="Directory used by the JSON file workflow store",
    )

    # Interpreter
    trigger_match_policy: Literal["all", "first"] = Field(
        default="all",
        description="'all' walks every matched trigger, 'first' stops after the first match",
    )
    condition_strict_undefined: bool = Field(
        default=False,
        description="Treat undefined names in condition expressions as evaluation errors",
    )

    # Activation
    require_valid_on_activate: bool = Field(
        default=True,
        description="Refuse to activate graphs whose validation reports errors",
    )

    # Action executor
    max_delay_seconds: float = Field(
        default=3600.0,
        ge=0.0,
        description="Upper bound applied to wait instructions by the executor",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    """
    return Settings()
