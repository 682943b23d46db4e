"""
Configuration and settings for the RockMundo backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service and the worker."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected), read from DATABASE_URL
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "ROCKMUNDO_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Queue (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="rockmundo:jobs")

    # Seed for settlement dice; unset means a fresh seed per job.
    rng_seed: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("ROCKMUNDO_RNG_SEED", "rng_seed")
    )

    # Sponsorships
    sponsorship_min_fame: int = Field(default=250)
    sponsorship_max_pending_offers: int = Field(default=5)
    sponsorship_contract_days: int = Field(default=90)

    # Worker
    stale_job_lock_seconds: int = Field(default=900)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
