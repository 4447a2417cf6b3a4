# lifecycle_engine/config/settings.py

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LIFECYCLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_name: str = "tenant-lifecycle-engine"
    environment: Literal["dev", "test", "prod"] = "dev"
    version: str = "0.1.0"

    # --- Subscription lifecycle ---
    grace_period_days: int = Field(7, ge=0)

    # --- Audit durability ---
    audit_retry_attempts: int = Field(5, ge=1)
    audit_retry_backoff_seconds: float = Field(0.05, ge=0.0)

    # --- Locking ---
    lock_ttl_seconds: int = Field(30, ge=1)

    # --- Infrastructure (optional; in-memory adapters are used when unset) ---
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    rabbitmq_url: Optional[str] = None
    transition_exchange: str = "lifecycle_transitions"

    # --- Observability ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings()
