"""Configuration helpers for the leaderboard service."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    data_store: str = Field(default="memory", alias="DATA_STORE")
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_anon_key: str | None = Field(default=None, alias="SUPABASE_ANON_KEY")
    fetch_retries: int = Field(default=2, ge=0, alias="LEADERBOARD_FETCH_RETRIES")
    retry_backoff_s: float = Field(
        default=0.25, ge=0.0, alias="LEADERBOARD_RETRY_BACKOFF_S"
    )
    http_timeout_s: float = Field(default=10.0, gt=0.0, alias="HTTP_TIMEOUT_S")
    sse_ping_interval_s: float = Field(
        default=15.0, gt=0.0, alias="SSE_PING_INTERVAL_S"
    )
    realtime_webhook_secret: str | None = Field(
        default=None, alias="REALTIME_WEBHOOK_SECRET"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_allow_origins: str = Field(
        default="http://localhost,http://127.0.0.1", alias="CORS_ALLOW_ORIGINS"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def backend(self) -> str:
        value = (self.data_store or "memory").strip().lower()
        return value if value in {"memory", "rest"} else "memory"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()  # type: ignore[call-arg]


def reset_settings_cache() -> None:
    """Clear cached settings (primarily for tests)."""

    get_settings.cache_clear()


_TRUE_VALUES = {"1", "true", "yes", "on"}


def env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES
