"""Security helpers for API authentication."""

from __future__ import annotations

import os

from fastapi import Header, HTTPException, Query, status

from golf_leaderboard.config import env_bool


def load_api_keys() -> set[str]:
    raw = os.getenv("API_KEYS") or os.getenv("API_KEY") or ""
    return {item.strip() for item in raw.split(",") if item.strip()}


def require_api_key(
    x_api_key: str | None = Header(default=None, alias="x-api-key"),
    api_key_query: str | None = Query(default=None, alias="apiKey"),
) -> str | None:
    """Require a matching API key header when enabled via env.

    The key may also arrive as an ``apiKey`` query parameter, which is what
    browser ``EventSource`` clients can send.
    """

    candidate = x_api_key or api_key_query

    if not env_bool("REQUIRE_API_KEY"):
        return candidate

    allowed_keys = load_api_keys()
    if not allowed_keys or candidate not in allowed_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid api key",
        )

    return candidate


__all__ = ["require_api_key", "load_api_keys"]
