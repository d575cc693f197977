"""Live standings for one tournament, kept current from the score change feed."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Set

from golf_leaderboard.metrics import LEADERBOARD_REFRESHES, LIVE_LEADERBOARDS
from golf_leaderboard.store.base import (
    SCORES_TABLE,
    ChangeEvent,
    DataStore,
    StoreError,
    Subscription,
    tournament_filter,
)
from golf_leaderboard.telemetry.events import (
    record_board_build,
    record_board_resync,
    record_fetch_failed,
    record_feed_event,
    record_stale_discard,
    record_subscription,
)

from .aggregate import compute_standings
from .models import LeaderboardSnapshot, LeaderboardState, ScoreRow, StandingsEntry

logger = logging.getLogger(__name__)

_LISTENER_MAXSIZE = 100


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 2
    backoff_s: float = 0.25
    max_backoff_s: float = 2.0

    def delay(self, attempt: int) -> float:
        return min(self.max_backoff_s, self.backoff_s * (2 ** max(0, attempt - 1)))


@dataclass
class FetchResult:
    name: Optional[str] = None
    rows: List[ScoreRow] = field(default_factory=list)
    error: Optional[str] = None
    attempts: int = 0
    duration_ms: float = 0.0


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


async def fetch_tournament_scores(
    store: DataStore, tournament_id: str, retry: RetryPolicy | None = None
) -> FetchResult:
    """Fetch the tournament name and score rows, retrying store failures.

    Never raises for data-access problems; the failure is returned on the
    result instead.
    """

    policy = retry or RetryPolicy()
    start = time.perf_counter()
    attempt = 0
    while True:
        attempt += 1
        try:
            name = await store.fetch_tournament_name(tournament_id)
            rows = await store.fetch_scores(tournament_id)
        except StoreError as exc:
            record_fetch_failed(tournament_id, attempt=attempt, error=_describe(exc))
            if attempt > policy.retries:
                logger.warning(
                    "tournament %s: leaderboard fetch failed after %d attempts: %s",
                    tournament_id,
                    attempt,
                    exc,
                )
                return FetchResult(
                    error=_describe(exc),
                    attempts=attempt,
                    duration_ms=(time.perf_counter() - start) * 1000.0,
                )
            await asyncio.sleep(policy.delay(attempt))
            continue
        except Exception as exc:
            logger.exception("tournament %s: leaderboard fetch crashed", tournament_id)
            record_fetch_failed(tournament_id, attempt=attempt, error=_describe(exc))
            return FetchResult(
                error=_describe(exc),
                attempts=attempt,
                duration_ms=(time.perf_counter() - start) * 1000.0,
            )
        return FetchResult(
            name=name,
            rows=list(rows),
            attempts=attempt,
            duration_ms=(time.perf_counter() - start) * 1000.0,
        )


async def load_leaderboard(
    store: DataStore, tournament_id: str, retry: RetryPolicy | None = None
) -> LeaderboardSnapshot:
    """Fetch and rank once, without subscribing to changes."""

    result = await fetch_tournament_scores(store, tournament_id, retry)
    if result.error is not None:
        return LeaderboardSnapshot(tournament_id=tournament_id, error=result.error)
    start = time.perf_counter()
    standings = compute_standings(result.rows)
    record_board_build(
        tournament_id,
        result.duration_ms + (time.perf_counter() - start) * 1000.0,
        rows=len(result.rows),
        players=len(standings),
    )
    return LeaderboardSnapshot(
        tournament_id=tournament_id,
        tournament_name=result.name,
        standings=standings,
        updated_at=_now_iso(),
    )


class LiveLeaderboard:
    """Standings for one tournament that follow the ``scores`` change feed.

    Every change event triggers a full refetch. Each fetch takes a request
    token and only the result carrying the latest issued token is applied, so
    a slow superseded fetch can never overwrite newer standings. ``close``
    releases the subscription and invalidates the token; fetches still in
    flight finish but their results are dropped.
    """

    def __init__(self, store: DataStore, *, retry: RetryPolicy | None = None) -> None:
        self._store = store
        self._retry = retry or RetryPolicy()
        self._state = LeaderboardState.IDLE
        self._tournament_id: Optional[str] = None
        self._tournament_name: Optional[str] = None
        self._standings: List[StandingsEntry] = []
        self._error: Optional[str] = None
        self._updated_at: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._token = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._events: Optional[asyncio.Queue[ChangeEvent]] = None
        self._consumer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._listeners: List[asyncio.Queue[LeaderboardSnapshot]] = []

    @property
    def state(self) -> LeaderboardState:
        return self._state

    @property
    def tournament_id(self) -> Optional[str]:
        return self._tournament_id

    @property
    def live(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def standings(self) -> List[StandingsEntry]:
        return list(self._standings)

    def snapshot(self) -> LeaderboardSnapshot:
        return LeaderboardSnapshot(
            tournament_id=self._tournament_id,
            tournament_name=self._tournament_name,
            state=self._state,
            live=self.live,
            standings=[entry.model_copy(deep=True) for entry in self._standings],
            error=self._error,
            updated_at=self._updated_at,
        )

    def listen(
        self, maxsize: int = _LISTENER_MAXSIZE
    ) -> "asyncio.Queue[LeaderboardSnapshot]":
        """Queue of snapshots; when full, the oldest entry gives way."""

        queue: asyncio.Queue[LeaderboardSnapshot] = asyncio.Queue(maxsize=maxsize)
        self._listeners.append(queue)
        return queue

    def unlisten(self, queue: "asyncio.Queue[LeaderboardSnapshot]") -> None:
        if queue in self._listeners:
            self._listeners.remove(queue)

    async def open(self, tournament_id: str) -> LeaderboardSnapshot:
        if self._state is not LeaderboardState.IDLE:
            raise RuntimeError("leaderboard is already open")
        self._loop = asyncio.get_running_loop()
        self._tournament_id = str(tournament_id)
        self._tournament_name = None
        self._standings = []
        self._error = None
        self._updated_at = None
        self._events = asyncio.Queue()
        self._transition(LeaderboardState.LOADING)

        if self._subscribe():
            self._consumer = asyncio.create_task(self._consume())

        token = self._next_token()
        await self._run_fetch(token)
        return self.snapshot()

    async def refresh(self) -> LeaderboardSnapshot:
        """Refetch on demand, e.g. when the change feed is unavailable."""

        if self._state is LeaderboardState.IDLE:
            raise RuntimeError("leaderboard is not open")
        await self._spawn_fetch(reason="manual")
        return self.snapshot()

    async def drain(self) -> None:
        """Wait until queued change events and in-flight fetches have settled."""

        await asyncio.sleep(0)
        while True:
            if self._events is not None and not self._events.empty():
                await asyncio.sleep(0)
                continue
            pending = list(self._inflight)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def close(self) -> None:
        if self._state is LeaderboardState.IDLE and self._subscription is None:
            return
        tournament_id = self._tournament_id or ""
        if self._subscription is not None:
            handle, self._subscription = self._subscription, None
            self._store.unsubscribe(handle)
            LIVE_LEADERBOARDS.dec()
            record_subscription(tournament_id, "released")
        self._token += 1
        if self._consumer is not None:
            self._consumer.cancel()
            self._consumer = None
        self._events = None
        self._loop = None
        self._transition(LeaderboardState.IDLE)

    # -- internals ----------------------------------------------------------

    def _next_token(self) -> int:
        self._token += 1
        return self._token

    def _subscribe(self) -> bool:
        tournament_id = self._tournament_id or ""
        try:
            self._subscription = self._store.subscribe(
                SCORES_TABLE, tournament_filter(tournament_id), self._on_change
            )
        except Exception as exc:
            logger.warning(
                "tournament %s: live updates unavailable, serving manual refresh: %s",
                tournament_id,
                exc,
            )
            record_subscription(tournament_id, "failed", error=_describe(exc))
            self._subscription = None
            return False
        LIVE_LEADERBOARDS.inc()
        record_subscription(tournament_id, "open")
        return True

    def _on_change(self, event: ChangeEvent) -> None:
        # May run on a store thread; hand the event to the loop that owns us.
        loop, queue = self._loop, self._events
        if loop is None or queue is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(queue.put_nowait, event)

    async def _consume(self) -> None:
        queue = self._events
        assert queue is not None
        while True:
            event = await queue.get()
            record_feed_event(self._tournament_id or "", event.type)
            self._spawn_fetch(reason=f"feed.{event.type.lower()}")

    def _spawn_fetch(self, *, reason: str) -> asyncio.Task:
        token = self._next_token()
        if self._state is LeaderboardState.LIVE:
            self._transition(LeaderboardState.REFRESHING)
        record_board_resync(self._tournament_id or "", reason=reason, token=token)
        task = asyncio.create_task(self._run_fetch(token))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run_fetch(self, token: int) -> bool:
        tournament_id = self._tournament_id or ""
        result = await fetch_tournament_scores(self._store, tournament_id, self._retry)
        if token != self._token:
            LEADERBOARD_REFRESHES.labels(outcome="stale").inc()
            record_stale_discard(tournament_id, token=token, latest=self._token)
            logger.debug(
                "tournament %s: dropping fetch %d, latest is %d",
                tournament_id,
                token,
                self._token,
            )
            return False

        if result.error is not None:
            LEADERBOARD_REFRESHES.labels(outcome="failed").inc()
            self._error = result.error
        else:
            start = time.perf_counter()
            standings = compute_standings(result.rows)
            record_board_build(
                tournament_id,
                result.duration_ms + (time.perf_counter() - start) * 1000.0,
                rows=len(result.rows),
                players=len(standings),
            )
            LEADERBOARD_REFRESHES.labels(outcome="applied").inc()
            if result.name is not None:
                self._tournament_name = result.name
            self._standings = standings
            self._error = None
            self._updated_at = _now_iso()
        self._transition(LeaderboardState.LIVE)
        return True

    def _transition(self, state: LeaderboardState) -> None:
        self._state = state
        snapshot = self.snapshot()
        for queue in list(self._listeners):
            if queue.full():
                # slow listener: the newest snapshot must still be the last one seen
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.debug("leaderboard listener full; dropped oldest snapshot")
            queue.put_nowait(snapshot)


__all__ = [
    "RetryPolicy",
    "FetchResult",
    "LiveLeaderboard",
    "fetch_tournament_scores",
    "load_leaderboard",
]
