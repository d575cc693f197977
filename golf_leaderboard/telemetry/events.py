"""Telemetry helpers for leaderboard and scoring instrumentation."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Mapping, MutableMapping, Optional

EventsTelemetryEmitter = Callable[[str, Mapping[str, object]], None]

_emitter: Optional[EventsTelemetryEmitter] = None
_logger = logging.getLogger("golf_leaderboard.telemetry.events")


def set_events_telemetry_emitter(candidate: EventsTelemetryEmitter | None) -> None:
    """Register a telemetry emitter used for leaderboard instrumentation."""

    global _emitter
    _emitter = candidate if callable(candidate) else None


def _safe_emit(event: str, payload: MutableMapping[str, object]) -> None:
    if not _emitter:
        _logger.debug("telemetry emitter not configured for event %s", event)
        return
    try:
        _emitter(event, dict(payload))
    except Exception:  # pragma: no cover - defensive logging only
        _logger.exception("failed to emit telemetry event %s", event)


def _duration(duration_ms: float) -> int:
    return int(max(0, round(duration_ms)))


def record_board_build(
    tournament_id: str,
    duration_ms: float,
    *,
    rows: int | None = None,
    players: int | None = None,
) -> None:
    payload: Dict[str, object] = {
        "tournamentId": tournament_id,
        "durationMs": _duration(duration_ms),
        "ts": _now_ms(),
    }
    if rows is not None:
        payload["rows"] = int(rows)
    if players is not None:
        payload["players"] = int(players)
    _safe_emit("board.build_ms", payload)


def record_board_resync(
    tournament_id: str, *, reason: str | None = None, token: int | None = None
) -> None:
    payload: Dict[str, object] = {"tournamentId": tournament_id}
    if reason:
        payload["reason"] = reason
    if token is not None:
        payload["token"] = token
    payload["ts"] = _now_ms()
    _safe_emit("board.resync", payload)


def record_fetch_failed(
    tournament_id: str, *, attempt: int, error: str | None = None
) -> None:
    payload: Dict[str, object] = {
        "tournamentId": tournament_id,
        "attempt": attempt,
        "ts": _now_ms(),
    }
    if error:
        payload["error"] = error
    _safe_emit("board.fetch_failed", payload)


def record_stale_discard(tournament_id: str, *, token: int, latest: int) -> None:
    payload: Dict[str, object] = {
        "tournamentId": tournament_id,
        "token": token,
        "latest": latest,
        "ts": _now_ms(),
    }
    _safe_emit("board.stale_discard", payload)


def record_feed_event(tournament_id: str, change_type: str) -> None:
    payload: Dict[str, object] = {
        "tournamentId": tournament_id,
        "type": change_type,
        "ts": _now_ms(),
    }
    _safe_emit("feed.event", payload)


def record_subscription(
    tournament_id: str, status: str, *, error: str | None = None
) -> None:
    payload: Dict[str, object] = {"tournamentId": tournament_id, "status": status}
    if error:
        payload["error"] = error
    payload["ts"] = _now_ms()
    _safe_emit("feed.subscription", payload)


def record_score_write(
    tournament_id: str,
    duration_ms: float,
    *,
    status: str,
    player_id: str | None = None,
    hole: int | None = None,
) -> None:
    payload: Dict[str, object] = {
        "tournamentId": tournament_id,
        "durationMs": _duration(duration_ms),
        "status": status,
        "ts": _now_ms(),
    }
    if player_id:
        payload["playerId"] = player_id
    if hole is not None:
        payload["hole"] = int(hole)
    _safe_emit("score.write_ms", payload)


def record_status_change(
    tournament_id: str, status: str, *, member_id: str | None = None
) -> None:
    payload: Dict[str, object] = {"tournamentId": tournament_id, "status": status}
    if member_id:
        payload["memberId"] = member_id
    payload["ts"] = _now_ms()
    _safe_emit("tournament.status", payload)


def _now_ms() -> int:
    from time import time

    return int(time() * 1000)


__all__ = [
    "set_events_telemetry_emitter",
    "record_board_build",
    "record_board_resync",
    "record_fetch_failed",
    "record_stale_discard",
    "record_feed_event",
    "record_subscription",
    "record_score_write",
    "record_status_change",
]
