"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def parse_id_list(ids_string: str | None) -> frozenset[int]:
    """Parse a comma-separated list of item ids.

    Args:
        ids_string: Comma-separated integers, or None.

    Returns:
        Frozen set of ids; blank entries are ignored.

    Raises:
        ValueError: If an entry is not an integer.

    Examples:
        >>> sorted(parse_id_list("1,2, 3"))
        [1, 2, 3]
        >>> parse_id_list("")
        frozenset()
    """
    if not ids_string:
        return frozenset()

    return frozenset(int(part.strip()) for part in ids_string.split(",") if part.strip())


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level name")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file at this size (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class DatabaseSettings(BaseSettings):
    """Item catalog storage configuration."""

    url: str = Field(
        "sqlite:///Items.db",
        description="SQLAlchemy database URL of the item catalog",
    )
    echo: bool = Field(False, description="Log every SQL statement")

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Read-through cache configuration for listing and count payloads."""

    page_size: int = Field(
        1000,
        description="Items per getNextItems page (also the spacing of warmed cursors)",
        ge=1,
    )
    warm_pages: int = Field(
        10,
        description="Number of leading page cursors cached at startup",
        ge=0,
    )
    discard_boundary_page: bool = Field(
        True,
        description=(
            "When warm-up reaches an empty page, also drop the previous page "
            "since it may be incomplete"
        ),
    )
    refresh_interval_seconds: float = Field(
        60.0,
        description="Interval between total-count refreshes",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class RecipeSettings(BaseSettings):
    """Recipe tree resolution configuration."""

    base_item_ids: str = Field(
        "1,2,3,4",
        description="Comma-separated ids treated as base materials (never decomposed)",
    )
    fuzzy_limit: int = Field(
        50,
        description="Maximum results returned by fuzzy item search",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="RECIPE_",
        case_sensitive=False,
    )

    @property
    def base_ids(self) -> frozenset[int]:
        return parse_id_list(self.base_item_ids)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    static_dir: str = Field(
        "html",
        description="Directory holding index.html and the assets/ folder",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on /api routes",
    )
    rate_limit_rate: float = Field(
        1.0,
        description="Sustained tokens per second granted to each client",
        gt=0,
    )
    rate_limit_burst: int = Field(
        10,
        description="Token bucket capacity (maximum burst) per client",
        ge=1,
    )
    rate_limit_idle_ttl_seconds: float | None = Field(
        None,
        description="Drop buckets idle for longer than this; unset keeps every key",
        gt=0,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    recipe: RecipeSettings = Field(default_factory=RecipeSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
