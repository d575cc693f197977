"""Supabase (PostgREST) backed data store."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from golf_leaderboard.auth import Session
from golf_leaderboard.leaderboard.aggregate import normalize_score_rows
from golf_leaderboard.leaderboard.models import ScoreRow

from .base import (
    ChangeCallback,
    ChangeFilter,
    StoreError,
    Subscription,
    SubscriptionError,
)
from .feed import ChangeFeed

logger = logging.getLogger(__name__)

SCORES_SELECT = (
    "player_id,strokes,net_strokes,holes(hole_number,par),profiles(full_name)"
)


class RestDataStore:
    """Reads tournaments and scores through the PostgREST HTTP interface.

    Realtime delivery is optional: attach a :class:`ChangeFeed` that is fed
    by whatever bridges the hosted change stream into the process. Without
    one, ``subscribe`` raises :class:`SubscriptionError`.
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        session: Session | None = None,
        feed: ChangeFeed | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        if not anon_key:
            raise ValueError("anon_key is required")
        self.base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._session = session
        self._feed = feed
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        token = (
            self._session.access_token
            if self._session and self._session.access_token
            else self._anon_key
        )
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {
            "base_url": f"{self.base_url}/rest/v1",
            "headers": self._headers(),
            "timeout": self._timeout,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def _get(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        try:
            async with self._client() as client:
                response = await client.get(f"/{table}", params=params)
        except httpx.RequestError as exc:
            raise StoreError(f"{table} query failed: {exc}") from exc
        if response.status_code != 200:
            raise StoreError(f"{table} query failed: {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise StoreError(f"{table} query returned invalid json") from exc
        if not isinstance(payload, list):
            raise StoreError(f"{table} query returned unexpected payload")
        return payload

    async def fetch_tournament_name(self, tournament_id: str) -> Optional[str]:
        rows = await self._get(
            "tournaments", {"select": "name", "id": f"eq.{tournament_id}"}
        )
        if not rows:
            return None
        name = rows[0].get("name")
        return str(name) if name is not None else None

    async def fetch_scores(self, tournament_id: str) -> List[ScoreRow]:
        rows = await self._get(
            "scores",
            {
                "select": SCORES_SELECT,
                "tournament_id": f"eq.{tournament_id}",
                "order": "player_id",
            },
        )
        normalized = normalize_score_rows(rows)
        if len(normalized) != len(rows):
            logger.info(
                "tournament %s: %d of %d score rows unusable",
                tournament_id,
                len(rows) - len(normalized),
                len(rows),
            )
        return normalized

    def subscribe(
        self, table: str, change_filter: ChangeFilter, callback: ChangeCallback
    ) -> Subscription:
        if self._feed is None:
            raise SubscriptionError("realtime change feed not configured")
        return self._feed.subscribe(table, change_filter, callback)

    def unsubscribe(self, handle: Subscription) -> None:
        handle.release()


__all__ = ["RestDataStore", "SCORES_SELECT"]
