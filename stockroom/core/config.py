"""Environment-driven configuration.

WHAT: Every setting the service reads from the environment or a ``.env`` file.
WHEN: Loaded once, the first time anything imports ``settings``.
WHY: Keeps connection strings and logging switches out of the code paths that
use them.
HOW: ``pydantic-settings`` validates the raw strings; ``get_settings`` caches
the result so each process builds it exactly once.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Stockroom"
    APP_ENV: str = "dev"

    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2])
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2] / "data")

    # Empty means "SQLite file under DATA_DIR".
    DB_URL: str = Field(default="", validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    HOST: str = "0.0.0.0"
    PORT: int = 8089

    # Default recipient for low-stock alerts raised through the HTTP layer.
    LOW_STOCK_NOTIFY_USER_ID: int | None = None

    METRICS_ENABLED: bool = True

    @property
    def database_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR / 'stockroom.db'}"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    if not settings.DB_URL:
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
