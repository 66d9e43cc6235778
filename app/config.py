from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
from dataclasses import dataclass
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "Putaway Reconciliation Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Inventory ledger service (post-commit putaway events)
    INVENTORY_SERVICE_URL: str = ""  # e.g., "http://inventory:8000/api/v1/inventory/update"
    INVENTORY_SERVICE_API_KEY: Optional[str] = None
    INVENTORY_SYNC_ENABLED: bool = True
    INVENTORY_SYNC_TIMEOUT: float = 10.0  # Seconds

    # Putaway Settings
    BIN_SUGGESTION_CANDIDATE_LIMIT: int = 100  # Active bins considered per suggestion
    SCAN_CONFLICT_RETRIES: int = 1  # Re-read/merge attempts on scan index insert races
    PUTAWAY_ENFORCE_SKU_BIN_AFFINITY: bool = False  # Reject a SKU already tracked in another bin
    PUTAWAY_ENFORCE_SINGLE_SKU_BIN: bool = False  # Reject a bin already holding other SKUs

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin for origin in self.CORS_ORIGINS if origin]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@dataclass(frozen=True)
class PutawayConfig:
    """
    Explicit putaway configuration handed to the coordinator and scan store.

    Core putaway code takes one of these instead of reading Settings.
    """
    candidate_limit: int = 100
    scan_conflict_retries: int = 1
    enforce_sku_bin_affinity: bool = False
    enforce_single_sku_bin: bool = False

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PutawayConfig":
        return cls(
            candidate_limit=settings.BIN_SUGGESTION_CANDIDATE_LIMIT,
            scan_conflict_retries=settings.SCAN_CONFLICT_RETRIES,
            enforce_sku_bin_affinity=settings.PUTAWAY_ENFORCE_SKU_BIN_AFFINITY,
            enforce_single_sku_bin=settings.PUTAWAY_ENFORCE_SINGLE_SKU_BIN,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
