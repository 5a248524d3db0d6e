# backend/studiobook/core/config.py
"""
Runtime configuration for the studio booking store.

Settings are read from the environment (and a local ``.env`` outside CI).
Only the database location and pool sizing are part of the external
contract; everything else has a sensible default.
"""

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)

_BACKEND_ROOT = Path(__file__).resolve().parents[2]

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


def is_running_tests() -> bool:
    """Detect if code is running under pytest."""
    return os.getenv("PYTEST_CURRENT_TEST") is not None


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")
    log_level: str = Field(default="INFO")

    database_path: str = Field(
        default="data/bookings.db",
        description="Path to the embedded SQLite database file",
    )
    db_max_connections: int = Field(default=5, ge=1, description="Upper bound on pooled handles")
    db_pool_timeout_seconds: float = Field(
        default=30.0, gt=0, description="How long an acquire may wait for a free connection"
    )
    db_busy_timeout_ms: int = Field(
        default=5000, ge=0, description="SQLite busy_timeout applied to every connection"
    )
    db_pool_poll_interval_seconds: float = Field(default=0.1, gt=0)
    audit_hook_timeout_seconds: float = Field(
        default=1.0, gt=0, description="Acquire timeout for post-commit audit_log writes"
    )

    # SQLite caps bound parameters per statement (999 on older builds)
    hydration_chunk_size: int = Field(default=900, ge=1, le=999)

    studio_timezone: str = Field(default="Asia/Jakarta")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("studio_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value

    def resolved_database_path(self) -> Path:
        """Return the database path, anchoring relative paths at the backend root."""
        path = Path(self.database_path)
        if not path.is_absolute():
            path = _BACKEND_ROOT / path
        return path


@dataclass(frozen=True)
class PoolConfig:
    """Sizing and timeout knobs for a ``ConnectionPool``."""

    max_connections: int = 5
    timeout: float = 30.0
    busy_timeout_ms: int = 5000
    poll_interval: float = 0.1

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "PoolConfig":
        source = source or settings
        return cls(
            max_connections=source.db_max_connections,
            timeout=source.db_pool_timeout_seconds,
            busy_timeout_ms=source.db_busy_timeout_ms,
            poll_interval=source.db_pool_poll_interval_seconds,
        )


settings = Settings()
