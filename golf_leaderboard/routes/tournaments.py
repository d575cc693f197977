from __future__ import annotations

import logging
import time
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from golf_leaderboard.auth import Session, get_session, require_admin
from golf_leaderboard.security import require_api_key
from golf_leaderboard.store import TOURNAMENT_STATUSES, MemoryDataStore, NotFoundError
from golf_leaderboard.telemetry.events import record_score_write, record_status_change

from .deps import get_writable_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tournaments"], dependencies=[Depends(require_api_key)])


class PlayerIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120, alias="fullName")
    player_id: str | None = Field(default=None, alias="playerId")

    model_config = ConfigDict(populate_by_name=True)


class PlayerOut(BaseModel):
    id: str
    full_name: str = Field(alias="fullName")

    model_config = ConfigDict(populate_by_name=True)


class HoleIn(BaseModel):
    hole_number: int = Field(..., ge=1, le=36, alias="holeNumber")
    par: int = Field(..., ge=3, le=6)
    handicap_index: int = Field(..., ge=1, le=36, alias="handicapIndex")
    distance_meters: int | None = Field(default=None, ge=0, alias="distanceMeters")

    model_config = ConfigDict(populate_by_name=True)


class CourseIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    location: str | None = Field(default=None, max_length=200)
    holes: List[HoleIn] = Field(..., min_length=1)


class HoleOut(HoleIn):
    id: str


class CourseOut(BaseModel):
    id: str
    name: str
    location: str | None = None
    par: int
    total_holes: int = Field(alias="totalHoles")
    holes: List[HoleOut]

    model_config = ConfigDict(populate_by_name=True)


class TournamentIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    course_id: str = Field(..., alias="courseId")
    tournament_date: str | None = Field(default=None, alias="tournamentDate")

    model_config = ConfigDict(populate_by_name=True)


class TournamentOut(BaseModel):
    id: str
    name: str
    course_id: str = Field(alias="courseId")
    tournament_date: str = Field(alias="tournamentDate")
    status: str
    created_by: str | None = Field(default=None, alias="createdBy")

    model_config = ConfigDict(populate_by_name=True)


class StatusIn(BaseModel):
    status: str


class ScoreIn(BaseModel):
    player_id: str = Field(..., alias="playerId")
    hole: int = Field(..., ge=1, le=36)
    strokes: int = Field(..., ge=1, le=30)
    net_strokes: int | None = Field(default=None, alias="netStrokes")

    model_config = ConfigDict(populate_by_name=True)


class ScoreOut(BaseModel):
    id: str
    tournament_id: str = Field(alias="tournamentId")
    player_id: str = Field(alias="playerId")
    hole_id: str = Field(alias="holeId")
    strokes: int
    net_strokes: int | None = Field(default=None, alias="netStrokes")
    confirmed: bool = False
    recorded_by: str | None = Field(default=None, alias="recordedBy")

    model_config = ConfigDict(populate_by_name=True)


def _not_found(exc: NotFoundError) -> HTTPException:
    what = exc.args[0] if exc.args else "resource"
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


def _course_out(course: Dict[str, Any]) -> CourseOut:
    return CourseOut.model_validate(course)


@router.post("/players", response_model=PlayerOut, status_code=status.HTTP_201_CREATED)
def register_player(
    body: PlayerIn, store: MemoryDataStore = Depends(get_writable_store)
) -> PlayerOut:
    try:
        profile = store.add_profile(body.full_name, player_id=body.player_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return PlayerOut.model_validate(profile)


@router.post("/courses", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
def create_course(
    body: CourseIn, store: MemoryDataStore = Depends(get_writable_store)
) -> CourseOut:
    try:
        course = store.create_course(
            body.name,
            [hole.model_dump() for hole in body.holes],
            location=body.location,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return _course_out(course)


@router.get("/courses/{course_id}", response_model=CourseOut)
def get_course(
    course_id: str, store: MemoryDataStore = Depends(get_writable_store)
) -> CourseOut:
    course = store.get_course(course_id)
    if course is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="course not found")
    return _course_out(course)


@router.post(
    "/tournaments", response_model=TournamentOut, status_code=status.HTTP_201_CREATED
)
def create_tournament(
    body: TournamentIn,
    session: Session = Depends(get_session),
    store: MemoryDataStore = Depends(get_writable_store),
) -> TournamentOut:
    try:
        tournament = store.create_tournament(
            body.name,
            body.course_id,
            tournament_date=body.tournament_date,
            created_by=session.user_id,
        )
    except NotFoundError as exc:
        raise _not_found(exc) from None
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return TournamentOut.model_validate(tournament)


@router.get("/tournaments", response_model=List[TournamentOut])
def list_tournaments(
    status_filter: str | None = Query(default=None, alias="status"),
    store: MemoryDataStore = Depends(get_writable_store),
) -> List[TournamentOut]:
    return [TournamentOut.model_validate(row) for row in store.list_tournaments(status_filter)]


@router.get("/tournaments/{tournament_id}", response_model=TournamentOut)
def get_tournament(
    tournament_id: str, store: MemoryDataStore = Depends(get_writable_store)
) -> TournamentOut:
    tournament = store.get_tournament(tournament_id)
    if tournament is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="tournament not found"
        )
    return TournamentOut.model_validate(tournament)


@router.post("/tournaments/{tournament_id}/status", response_model=TournamentOut)
def update_status(
    tournament_id: str,
    body: StatusIn,
    member_id: str | None = Depends(require_admin),
    store: MemoryDataStore = Depends(get_writable_store),
) -> TournamentOut:
    value = body.status.strip().lower()
    if value not in TOURNAMENT_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"status must be one of {', '.join(TOURNAMENT_STATUSES)}",
        )
    try:
        tournament = store.set_status(tournament_id, value)
    except NotFoundError as exc:
        raise _not_found(exc) from None
    record_status_change(tournament_id, value, member_id=member_id)
    logger.info("tournament %s status -> %s", tournament_id, value)
    return TournamentOut.model_validate(tournament)


@router.post("/tournaments/{tournament_id}/scores", response_model=ScoreOut)
def submit_score(
    tournament_id: str,
    body: ScoreIn,
    session: Session = Depends(get_session),
    store: MemoryDataStore = Depends(get_writable_store),
):
    start = time.perf_counter()
    try:
        status_label, record = store.record_score(
            tournament_id,
            body.player_id,
            body.hole,
            body.strokes,
            net_strokes=body.net_strokes,
            recorded_by=session.user_id,
        )
    except NotFoundError as exc:
        record_score_write(
            tournament_id,
            (time.perf_counter() - start) * 1000.0,
            status="missing",
            player_id=body.player_id,
            hole=body.hole,
        )
        raise _not_found(exc) from None
    except ValueError as exc:
        record_score_write(
            tournament_id,
            (time.perf_counter() - start) * 1000.0,
            status="invalid",
            player_id=body.player_id,
            hole=body.hole,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc

    record_score_write(
        tournament_id,
        (time.perf_counter() - start) * 1000.0,
        status=status_label,
        player_id=body.player_id,
        hole=body.hole,
    )
    payload = ScoreOut.model_validate(record)
    if status_label == "created":
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=payload.model_dump(by_alias=True),
        )
    return payload


@router.post(
    "/tournaments/{tournament_id}/scores/{score_id}/confirm", response_model=ScoreOut
)
def confirm_score(
    tournament_id: str,
    score_id: str,
    store: MemoryDataStore = Depends(get_writable_store),
) -> ScoreOut:
    try:
        record = store.confirm_score(tournament_id, score_id)
    except NotFoundError as exc:
        raise _not_found(exc) from None
    return ScoreOut.model_validate(record)


@router.delete("/tournaments/{tournament_id}/scores/{score_id}")
def delete_score(
    tournament_id: str,
    score_id: str,
    store: MemoryDataStore = Depends(get_writable_store),
) -> Dict[str, Any]:
    try:
        record = store.delete_score(tournament_id, score_id)
    except NotFoundError as exc:
        raise _not_found(exc) from None
    return {"deleted": True, "id": record["id"]}


__all__ = ["router"]
