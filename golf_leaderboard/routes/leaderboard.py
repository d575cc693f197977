from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from golf_leaderboard.config import Settings, get_settings
from golf_leaderboard.leaderboard.live import (
    LiveLeaderboard,
    RetryPolicy,
    load_leaderboard,
)
from golf_leaderboard.leaderboard.models import LeaderboardSnapshot, StandingsEntry
from golf_leaderboard.leaderboard.scoring import (
    classify_score_color,
    score_to_par_label,
)
from golf_leaderboard.security import require_api_key
from golf_leaderboard.store import DataStore

from .deps import get_data_store, get_retry_policy

router = APIRouter(tags=["leaderboard"], dependencies=[Depends(require_api_key)])

NO_SCORES_MESSAGE = "No scores recorded yet"


class HoleScoreOut(BaseModel):
    hole_number: int = Field(alias="holeNumber")
    par: int
    strokes: int
    net_strokes: int | None = Field(default=None, alias="netStrokes")
    label: str
    color: str

    model_config = ConfigDict(populate_by_name=True)


class StandingOut(BaseModel):
    player_id: str = Field(alias="playerId")
    player_name: str = Field(alias="playerName")
    position: int
    total_strokes: int = Field(alias="totalStrokes")
    holes_played: int = Field(alias="holesPlayed")
    average_score: float = Field(
        alias="averageScore", description="Mean strokes per hole, one decimal place"
    )
    to_par: int = Field(alias="toPar")
    total_net_strokes: int | None = Field(default=None, alias="totalNetStrokes")
    last_hole_label: str | None = Field(default=None, alias="lastHoleLabel")
    holes: List[HoleScoreOut]

    model_config = ConfigDict(populate_by_name=True)


class LeaderboardResponse(BaseModel):
    tournament_id: str | None = Field(default=None, alias="tournamentId")
    tournament_name: str | None = Field(default=None, alias="tournamentName")
    state: str
    live: bool = False
    players: List[StandingOut]
    empty: bool
    message: str | None = None
    error: str | None = None
    updated_at: str | None = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


def _standing_out(entry: StandingsEntry) -> StandingOut:
    holes = [
        HoleScoreOut(
            hole_number=detail.hole_number,
            par=detail.par,
            strokes=detail.strokes,
            net_strokes=detail.net_strokes,
            label=score_to_par_label(detail.strokes, detail.par),
            color=classify_score_color(detail.strokes, detail.par).value,
        )
        for detail in entry.holes
    ]
    return StandingOut(
        player_id=entry.player_id,
        player_name=entry.player_name,
        position=entry.position,
        total_strokes=entry.total_strokes,
        holes_played=entry.holes_played,
        average_score=round(entry.average_score, 1),
        to_par=entry.to_par,
        total_net_strokes=entry.total_net_strokes,
        last_hole_label=holes[-1].label if holes else None,
        holes=holes,
    )


def present_snapshot(snapshot: LeaderboardSnapshot) -> LeaderboardResponse:
    players = [_standing_out(entry) for entry in snapshot.standings]
    return LeaderboardResponse(
        tournament_id=snapshot.tournament_id,
        tournament_name=snapshot.tournament_name,
        state=snapshot.state.value,
        live=snapshot.live,
        players=players,
        empty=not players,
        message=NO_SCORES_MESSAGE if not players and snapshot.error is None else None,
        error=snapshot.error,
        updated_at=snapshot.updated_at,
    )


def _is_unknown_tournament(snapshot: LeaderboardSnapshot) -> bool:
    return (
        snapshot.error is None and snapshot.tournament_name is None and snapshot.empty
    )


def _tournament_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail="tournament not found"
    )


def _sse(event: str, payload: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


@router.get("/tournaments/{tournament_id}/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    tournament_id: str,
    store: DataStore = Depends(get_data_store),
    retry: RetryPolicy = Depends(get_retry_policy),
) -> LeaderboardResponse:
    snapshot = await load_leaderboard(store, tournament_id, retry)
    if _is_unknown_tournament(snapshot):
        raise _tournament_not_found()
    return present_snapshot(snapshot)


@router.get("/tournaments/{tournament_id}/leaderboard/stream")
async def stream_leaderboard(
    tournament_id: str,
    request: Request,
    store: DataStore = Depends(get_data_store),
    retry: RetryPolicy = Depends(get_retry_policy),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    if _is_unknown_tournament(await load_leaderboard(store, tournament_id, retry)):
        raise _tournament_not_found()

    board = LiveLeaderboard(store, retry=retry)
    updates = board.listen()
    ping_interval = settings.sse_ping_interval_s

    async def event_stream():
        try:
            await board.open(tournament_id)
            while True:
                if await request.is_disconnected():
                    break
                try:
                    snapshot = await asyncio.wait_for(updates.get(), ping_interval)
                except asyncio.TimeoutError:
                    yield "event: ping\ndata: {}\n\n"
                    continue
                payload = present_snapshot(snapshot).model_dump(by_alias=True)
                yield _sse("standings", payload)
        finally:
            board.unlisten(updates)
            board.close()

    headers = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
    return StreamingResponse(
        event_stream(), media_type="text/event-stream", headers=headers
    )


__all__ = ["router", "present_snapshot", "NO_SCORES_MESSAGE"]
