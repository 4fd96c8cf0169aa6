from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ==============================
    # Application
    # ==============================
    APP_NAME: str = "Inventory Position Ledger"
    ENVIRONMENT: str = "local"

    # ==============================
    # Database
    # ==============================
    DATABASE_URL: str = "sqlite:///./inventory_ledger.db"

    # ==============================
    # Logging
    # ==============================
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ==============================
    # Security
    # ==============================
    ADMIN_API_KEY: Optional[str] = None
    API_KEYS: Optional[str] = None
    API_KEY_HEADER: str = "X-API-Key"

    # ==============================
    # Ledger
    # ==============================
    # "local", "utc" or an IANA zone name (e.g. "Asia/Beirut").
    LEDGER_TIMEZONE: str = "local"
    LEDGER_FILL_GAPS_AFTER_RECALC: bool = True

    # ==============================
    # Scheduler
    # ==============================
    SCHEDULER_ENABLED: bool = True
    SNAPSHOT_RUN_AFTER: str = "06:00"
    GAP_REPAIR_RUN_AFTER: str = "06:30"
    SCHEDULER_POLL_SECONDS: int = 30
    SCHEDULER_HEARTBEAT_SECONDS: int = 30
    SCHEDULER_STALE_SECONDS: int = 900
    SCHEDULER_RETRY_SECONDS: int = 300
    SCHEDULER_MAX_RETRIES: int = 3
    SCHEDULER_TZ: str = "local"


@lru_cache
def get_settings() -> Settings:
    """Cached settings loader (once per process)."""
    return Settings()


__all__ = ["Settings", "get_settings"]
