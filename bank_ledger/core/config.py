from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from ``BANK_*`` environment variables or ``.env``."""

    app_name: str = "Bank Ledger API"
    database_url: str = "sqlite:///bank_ledger.db"
    # Log every SQL statement the ledger issues.
    database_echo: bool = False
    # Seconds a SQLite writer waits on a locked database before failing.
    sqlite_busy_timeout: float = 5.0
    log_level: str = "INFO"
    log_format: str = "%(asctime)s %(levelname)s %(name)s %(message)s"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BANK_",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
