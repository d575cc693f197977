"""FastAPI dependencies resolving the configured data store."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException, status

from golf_leaderboard.auth import Session, get_session
from golf_leaderboard.config import Settings, get_settings
from golf_leaderboard.leaderboard.live import RetryPolicy
from golf_leaderboard.store import ChangeFeed, DataStore, MemoryDataStore, RestDataStore


@lru_cache(maxsize=1)
def get_change_feed() -> ChangeFeed:
    """Process-wide feed that the realtime webhook publishes into."""

    return ChangeFeed()


@lru_cache(maxsize=1)
def get_memory_store() -> MemoryDataStore:
    return MemoryDataStore()


def get_data_store(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> DataStore:
    if settings.backend == "rest":
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="data store not configured",
            )
        return RestDataStore(
            settings.supabase_url,
            settings.supabase_anon_key,
            session=session,
            feed=get_change_feed() if settings.realtime_webhook_secret else None,
            timeout=settings.http_timeout_s,
        )
    return get_memory_store()


def get_writable_store(store: DataStore = Depends(get_data_store)) -> MemoryDataStore:
    if not isinstance(store, MemoryDataStore):
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="writes are not supported by this data store",
        )
    return store


def get_retry_policy(settings: Settings = Depends(get_settings)) -> RetryPolicy:
    return RetryPolicy(
        retries=settings.fetch_retries, backoff_s=settings.retry_backoff_s
    )


__all__ = [
    "get_change_feed",
    "get_memory_store",
    "get_data_store",
    "get_writable_store",
    "get_retry_policy",
]
