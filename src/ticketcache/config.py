from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TICKETCACHE_", env_file=".env", extra="ignore")

    # Entry lifecycle
    default_ttl_seconds: int = Field(default=120, ge=0)
    bulk_ttl_seconds: int = Field(default=120, ge=0)

    # Deep-copy values on put and on read so callers never alias stored objects
    copy_values: bool = True

    # Periodic sweep of expired entries (optional, expiry is lazy without it)
    sweep_enabled: bool = False
    sweep_interval_seconds: float = Field(default=60.0, gt=0)

    # Notifications
    event_queue_size: int = Field(default=10000, gt=0)

    # Observability
    enable_metrics: bool = True
    log_level: str = "INFO"
    log_json: bool = True


settings = Settings()
