"""Environment-driven configuration for the donation portal backend.

Every setting lives on :class:`AppSettings` so there is one place to answer
"which knobs exist and what do they default to?". Values are read once from
the process environment (and ``.env`` files) the first time
:func:`get_settings` runs.
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

    APP_NAME: str = "Donation Portal"

    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2] / "data")

    DB_URL: str = Field(
        default="",
        validation_alias=AliasChoices("DB_URL", "DATABASE_URL"),
    )

    HOST: str = "0.0.0.0"
    PORT: int = 8089

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Comma separated list, e.g. "http://localhost:5173,https://portal.example.org"
    ALLOWED_ORIGINS: str = ""

    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    @property
    def is_sqlite(self) -> bool:
        return self.DB_URL.startswith("sqlite")

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    if not settings.DB_URL:
        # Default to a SQLite file inside DATA_DIR so a fresh checkout boots without setup.
        settings.DB_URL = f"sqlite:///{settings.DATA_DIR / 'donations.db'}"
    return settings


settings = get_settings()
