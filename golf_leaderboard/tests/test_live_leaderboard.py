from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Tuple

import pytest

from golf_leaderboard.leaderboard.live import (
    LiveLeaderboard,
    RetryPolicy,
    load_leaderboard,
)
from golf_leaderboard.leaderboard.models import LeaderboardState, ScoreRow
from golf_leaderboard.store import (
    ChangeEvent,
    ChangeFeed,
    MemoryDataStore,
    StoreError,
    SubscriptionError,
)


def _row(pid: str, name: str, hole: int, strokes: int, par: int = 4) -> ScoreRow:
    return ScoreRow(
        player_id=pid, player_name=name, strokes=strokes, hole_number=hole, par=par
    )


async def _until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class GatedStore:
    """Serves planned score sets, each released by its own gate."""

    def __init__(self, *, subscribe_error: Exception | None = None) -> None:
        self.feed = ChangeFeed()
        self.plans: List[Tuple[asyncio.Event, List[ScoreRow]]] = []
        self.started = 0
        self.subscribe_error = subscribe_error

    def plan(self, rows: List[ScoreRow], *, gated: bool = False) -> asyncio.Event:
        gate = asyncio.Event()
        if not gated:
            gate.set()
        self.plans.append((gate, rows))
        return gate

    async def fetch_tournament_name(self, tournament_id: str) -> Optional[str]:
        return "Spring Open"

    async def fetch_scores(self, tournament_id: str) -> List[ScoreRow]:
        gate, rows = self.plans[self.started]
        self.started += 1
        await gate.wait()
        return rows

    def subscribe(self, table, change_filter, callback):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        return self.feed.subscribe(table, change_filter, callback)

    def unsubscribe(self, handle) -> None:
        self.feed.unsubscribe(handle)


class FlakyStore(GatedStore):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.calls = 0

    async def fetch_scores(self, tournament_id: str) -> List[ScoreRow]:
        self.calls += 1
        if self.calls <= self.failures:
            raise StoreError("store unreachable")
        return await super().fetch_scores(tournament_id)


def _publish(store: GatedStore, change_type: str = "INSERT") -> None:
    store.feed.publish(ChangeEvent("scores", change_type, {"tournament_id": "t1"}))


@pytest.mark.anyio
async def test_open_loads_standings_and_goes_live(store: MemoryDataStore, seeded):
    tid = seeded["tournament_id"]
    store.record_score(tid, "alice", 1, 4)
    store.record_score(tid, "bob", 1, 5)
    board = LiveLeaderboard(store)

    snapshot = await board.open(tid)

    assert snapshot.state is LeaderboardState.LIVE
    assert snapshot.live is True
    assert snapshot.tournament_name == "Spring Open"
    assert [entry.player_name for entry in snapshot.standings] == ["Alice", "Bob"]
    assert store.feed.subscriber_count("scores") == 1
    board.close()


@pytest.mark.anyio
async def test_change_events_trigger_full_refetch(store: MemoryDataStore, seeded):
    tid = seeded["tournament_id"]
    board = LiveLeaderboard(store)
    snapshot = await board.open(tid)
    assert snapshot.empty

    store.record_score(tid, "alice", 1, 4)
    store.record_score(tid, "alice", 2, 2)
    store.record_score(tid, "bob", 1, 5)
    await board.drain()

    bob, alice = board.standings
    assert (bob.player_id, bob.total_strokes, bob.position) == ("bob", 5, 1)
    assert (alice.player_id, alice.total_strokes, alice.position) == ("alice", 6, 2)
    assert board.state is LeaderboardState.LIVE

    store.record_score(tid, "bob", 2, 1)
    await board.drain()
    assert [entry.player_id for entry in board.standings] == ["alice", "bob"]
    assert board.standings[1].total_strokes == 6

    score_id = store.score_records(tid)[0]["id"]
    store.delete_score(tid, score_id)
    await board.drain()
    assert sum(entry.holes_played for entry in board.standings) == 3
    board.close()


@pytest.mark.anyio
async def test_events_for_other_tournaments_are_ignored(store: MemoryDataStore, seeded):
    other = store.create_tournament("Autumn Cup", seeded["course_id"])
    board = LiveLeaderboard(store)
    await board.open(seeded["tournament_id"])
    updates = board.listen()

    store.record_score(other["id"], "alice", 1, 4)
    await board.drain()

    assert updates.empty()
    assert board.standings == []
    board.close()


@pytest.mark.anyio
async def test_superseded_fetch_result_is_discarded(telemetry_sink):
    store = GatedStore()
    store.plan([_row("alice", "Alice", 1, 4)])
    first = store.plan([_row("alice", "Alice", 1, 9)], gated=True)
    second = store.plan([_row("alice", "Alice", 1, 3)], gated=True)
    board = LiveLeaderboard(store, retry=RetryPolicy(retries=0))
    await board.open("t1")
    assert board.standings[0].total_strokes == 4

    _publish(store, "INSERT")
    _publish(store, "UPDATE")
    await _until(lambda: store.started == 3)
    assert board.state is LeaderboardState.REFRESHING

    second.set()
    await _until(lambda: board.state is LeaderboardState.LIVE)
    assert board.standings[0].total_strokes == 3

    first.set()
    await board.drain()
    assert board.standings[0].total_strokes == 3
    discards = [p for name, p in telemetry_sink if name == "board.stale_discard"]
    assert discards and discards[0]["token"] < discards[0]["latest"]
    board.close()


@pytest.mark.anyio
async def test_close_releases_subscription_and_drops_inflight_result():
    store = GatedStore()
    store.plan([_row("alice", "Alice", 1, 4)])
    gate = store.plan([_row("alice", "Alice", 1, 7)], gated=True)
    board = LiveLeaderboard(store)
    await board.open("t1")

    _publish(store)
    await _until(lambda: store.started == 2)
    board.close()

    assert board.state is LeaderboardState.IDLE
    assert store.feed.subscriber_count() == 0
    gate.set()
    await board.drain()
    assert board.standings[0].total_strokes == 4
    assert board.live is False


@pytest.mark.anyio
async def test_listeners_see_each_transition(store: MemoryDataStore, seeded):
    tid = seeded["tournament_id"]
    board = LiveLeaderboard(store)
    updates = board.listen()
    await board.open(tid)
    store.record_score(tid, "bob", 1, 5)
    await board.drain()
    board.close()

    states = []
    while not updates.empty():
        states.append(updates.get_nowait().state)
    assert states == [
        LeaderboardState.LOADING,
        LeaderboardState.LIVE,
        LeaderboardState.REFRESHING,
        LeaderboardState.LIVE,
        LeaderboardState.IDLE,
    ]


@pytest.mark.anyio
async def test_slow_listener_keeps_latest_snapshot(store: MemoryDataStore, seeded):
    tid = seeded["tournament_id"]
    board = LiveLeaderboard(store)
    updates = board.listen(maxsize=3)
    await board.open(tid)

    for strokes in range(1, 11):
        store.record_score(tid, "alice", 1, strokes)
        await board.drain()

    seen = []
    while not updates.empty():
        seen.append(updates.get_nowait())
    assert len(seen) == 3
    assert seen[-1].model_dump() == board.snapshot().model_dump()
    assert seen[-1].standings[0].total_strokes == 10
    board.close()


@pytest.mark.anyio
async def test_fetch_failure_retries_then_keeps_previous_standings(telemetry_sink):
    store = FlakyStore(failures=0)
    store.plan([_row("alice", "Alice", 1, 4)])
    board = LiveLeaderboard(store, retry=RetryPolicy(retries=1, backoff_s=0.0))
    await board.open("t1")

    store.failures = store.calls + 2
    snapshot = await board.refresh()

    assert snapshot.error == "store unreachable"
    assert snapshot.state is LeaderboardState.LIVE
    assert [entry.total_strokes for entry in snapshot.standings] == [4]
    failures = [p for name, p in telemetry_sink if name == "board.fetch_failed"]
    assert [p["attempt"] for p in failures] == [1, 2]
    board.close()


@pytest.mark.anyio
async def test_retry_recovers_transient_failure():
    store = FlakyStore(failures=1)
    store.plan([_row("bob", "Bob", 1, 5)])
    board = LiveLeaderboard(store, retry=RetryPolicy(retries=2, backoff_s=0.0))

    snapshot = await board.open("t1")

    assert snapshot.error is None
    assert snapshot.standings[0].player_id == "bob"
    board.close()


@pytest.mark.anyio
async def test_initial_failure_still_goes_live():
    store = FlakyStore(failures=10)
    board = LiveLeaderboard(store, retry=RetryPolicy(retries=0))

    snapshot = await board.open("t1")

    assert snapshot.state is LeaderboardState.LIVE
    assert snapshot.standings == []
    assert snapshot.error
    board.close()


@pytest.mark.anyio
async def test_subscription_failure_degrades_to_manual_refresh(telemetry_sink):
    store = GatedStore(subscribe_error=SubscriptionError("realtime down"))
    store.plan([_row("alice", "Alice", 1, 4)])
    store.plan([_row("alice", "Alice", 1, 3)])
    board = LiveLeaderboard(store)

    snapshot = await board.open("t1")
    assert snapshot.live is False
    assert snapshot.state is LeaderboardState.LIVE
    assert snapshot.standings[0].total_strokes == 4

    refreshed = await board.refresh()
    assert refreshed.standings[0].total_strokes == 3
    statuses = [p["status"] for name, p in telemetry_sink if name == "feed.subscription"]
    assert statuses == ["failed"]
    board.close()


@pytest.mark.anyio
async def test_open_twice_is_rejected(store: MemoryDataStore, seeded):
    board = LiveLeaderboard(store)
    await board.open(seeded["tournament_id"])
    with pytest.raises(RuntimeError):
        await board.open(seeded["tournament_id"])
    board.close()
    board.close()
    assert store.feed.subscriber_count() == 0


@pytest.mark.anyio
async def test_refresh_requires_open_board(store: MemoryDataStore):
    with pytest.raises(RuntimeError):
        await LiveLeaderboard(store).refresh()


@pytest.mark.anyio
async def test_load_leaderboard_reports_errors_without_raising():
    snapshot = await load_leaderboard(FlakyStore(failures=5), "t1", RetryPolicy(retries=0))

    assert snapshot.error == "store unreachable"
    assert snapshot.standings == []


def test_retry_delay_is_bounded():
    policy = RetryPolicy(retries=5, backoff_s=0.5, max_backoff_s=1.5)

    assert [policy.delay(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 1.5, 1.5]
