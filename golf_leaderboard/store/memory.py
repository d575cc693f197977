from __future__ import annotations

import uuid
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from golf_leaderboard.leaderboard.aggregate import normalize_score_rows
from golf_leaderboard.leaderboard.models import ScoreRow

from .base import (
    SCORES_TABLE,
    ChangeCallback,
    ChangeEvent,
    ChangeFilter,
    NotFoundError,
    Subscription,
)
from .feed import ChangeFeed

TOURNAMENT_STATUSES = ("planned", "active", "completed", "needs_adjustment")
DEFAULT_STATUS = "planned"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _positive_int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{label} must be a positive integer")
    return value


class MemoryDataStore:
    """Tournaments, courses, profiles and scores held in process memory."""

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        self._lock = Lock()
        self.feed = feed or ChangeFeed()
        self._profiles: Dict[str, Dict[str, Any]] = {}
        self._courses: Dict[str, Dict[str, Any]] = {}
        self._holes: Dict[str, Dict[str, Any]] = {}
        self._tournaments: Dict[str, Dict[str, Any]] = {}
        self._scores: Dict[str, Dict[str, Any]] = {}
        self._score_keys: Dict[Tuple[str, str, str], str] = {}

    # -- profiles -----------------------------------------------------------

    def add_profile(
        self, full_name: str, *, player_id: str | None = None
    ) -> Dict[str, Any]:
        name = (full_name or "").strip()
        if not name:
            raise ValueError("full_name is required")
        with self._lock:
            pid = str(player_id) if player_id else str(uuid.uuid4())
            profile = {"id": pid, "full_name": name, "created_at": _now_iso()}
            self._profiles[pid] = profile
            return dict(profile)

    def get_profile(self, player_id: str) -> Dict[str, Any] | None:
        with self._lock:
            profile = self._profiles.get(player_id)
            return dict(profile) if profile else None

    # -- courses ------------------------------------------------------------

    def create_course(
        self,
        name: str,
        holes: Iterable[Mapping[str, Any]],
        *,
        location: str | None = None,
    ) -> Dict[str, Any]:
        title = (name or "").strip()
        if not title:
            raise ValueError("course name is required")
        hole_rows = list(holes)
        if not hole_rows:
            raise ValueError("a course needs at least one hole")

        numbers = set()
        handicaps = set()
        prepared: List[Dict[str, Any]] = []
        for item in hole_rows:
            number = _positive_int(item.get("hole_number"), "hole_number")
            par = _positive_int(item.get("par"), "par")
            handicap = _positive_int(item.get("handicap_index"), "handicap_index")
            if number in numbers:
                raise ValueError(f"duplicate hole_number {number}")
            if handicap in handicaps:
                raise ValueError(f"duplicate handicap_index {handicap}")
            if handicap > len(hole_rows):
                raise ValueError(f"handicap_index {handicap} exceeds hole count")
            numbers.add(number)
            handicaps.add(handicap)
            prepared.append(
                {
                    "hole_number": number,
                    "par": par,
                    "handicap_index": handicap,
                    "distance_meters": item.get("distance_meters"),
                }
            )

        with self._lock:
            course_id = str(uuid.uuid4())
            hole_ids: List[str] = []
            for payload in sorted(prepared, key=lambda item: item["hole_number"]):
                hole_id = str(uuid.uuid4())
                self._holes[hole_id] = {"id": hole_id, "course_id": course_id, **payload}
                hole_ids.append(hole_id)
            self._courses[course_id] = {
                "id": course_id,
                "name": title,
                "location": location,
                "par": sum(item["par"] for item in prepared),
                "total_holes": len(prepared),
                "hole_ids": hole_ids,
                "created_at": _now_iso(),
            }
            return self._course_view_locked(course_id)

    def get_course(self, course_id: str) -> Dict[str, Any] | None:
        with self._lock:
            if course_id not in self._courses:
                return None
            return self._course_view_locked(course_id)

    def _course_view_locked(self, course_id: str) -> Dict[str, Any]:
        course = dict(self._courses[course_id])
        hole_ids = course.pop("hole_ids")
        course["holes"] = [dict(self._holes[hole_id]) for hole_id in hole_ids]
        return course

    def _hole_for_locked(self, course_id: str, hole_number: int) -> Dict[str, Any]:
        course = self._courses.get(course_id)
        if course is None:
            raise NotFoundError(f"course {course_id}")
        for hole_id in course["hole_ids"]:
            hole = self._holes[hole_id]
            if hole["hole_number"] == hole_number:
                return hole
        raise ValueError(f"hole {hole_number} is not part of the course")

    # -- tournaments --------------------------------------------------------

    def create_tournament(
        self,
        name: str,
        course_id: str,
        *,
        tournament_date: str | None = None,
        created_by: str | None = None,
    ) -> Dict[str, Any]:
        title = (name or "").strip()
        if not title:
            raise ValueError("tournament name is required")
        with self._lock:
            if course_id not in self._courses:
                raise NotFoundError(f"course {course_id}")
            tournament_id = str(uuid.uuid4())
            now = _now_iso()
            tournament = {
                "id": tournament_id,
                "name": title,
                "course_id": course_id,
                "tournament_date": tournament_date or now[:10],
                "status": DEFAULT_STATUS,
                "created_by": created_by,
                "created_at": now,
            }
            self._tournaments[tournament_id] = tournament
            return dict(tournament)

    def get_tournament(self, tournament_id: str) -> Dict[str, Any] | None:
        with self._lock:
            tournament = self._tournaments.get(tournament_id)
            return dict(tournament) if tournament else None

    def list_tournaments(self, status: str | None = None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [
                dict(item)
                for item in self._tournaments.values()
                if status is None or item["status"] == status
            ]
        rows.sort(key=lambda item: (item["tournament_date"], item["created_at"]))
        return rows

    def set_status(self, tournament_id: str, status: str) -> Dict[str, Any]:
        if status not in TOURNAMENT_STATUSES:
            raise ValueError(f"invalid tournament status: {status}")
        with self._lock:
            tournament = self._tournaments.get(tournament_id)
            if tournament is None:
                raise NotFoundError(f"tournament {tournament_id}")
            tournament["status"] = status
            return dict(tournament)

    # -- scores -------------------------------------------------------------

    def record_score(
        self,
        tournament_id: str,
        player_id: str,
        hole_number: int,
        strokes: int,
        *,
        net_strokes: int | None = None,
        recorded_by: str | None = None,
    ) -> Tuple[str, Dict[str, Any]]:
        """Insert or update the score for (tournament, hole, player)."""

        _positive_int(strokes, "strokes")
        if net_strokes is not None and (
            isinstance(net_strokes, bool) or not isinstance(net_strokes, int)
        ):
            raise ValueError("net_strokes must be an integer")
        with self._lock:
            tournament = self._tournaments.get(tournament_id)
            if tournament is None:
                raise NotFoundError(f"tournament {tournament_id}")
            if player_id not in self._profiles:
                raise NotFoundError(f"player {player_id}")
            hole = self._hole_for_locked(tournament["course_id"], hole_number)
            key = (tournament_id, hole["id"], player_id)
            existing_id = self._score_keys.get(key)
            if existing_id is not None:
                record = self._scores[existing_id]
                old_record = dict(record)
                record.update(
                    {
                        "strokes": strokes,
                        "net_strokes": net_strokes,
                        "recorded_by": recorded_by or record.get("recorded_by"),
                        "confirmed": False,
                    }
                )
                status, change_type = "updated", "UPDATE"
            else:
                score_id = str(uuid.uuid4())
                record = {
                    "id": score_id,
                    "tournament_id": tournament_id,
                    "hole_id": hole["id"],
                    "player_id": player_id,
                    "strokes": strokes,
                    "net_strokes": net_strokes,
                    "confirmed": False,
                    "recorded_by": recorded_by,
                    "created_at": _now_iso(),
                }
                self._scores[score_id] = record
                self._score_keys[key] = score_id
                old_record = {}
                status, change_type = "created", "INSERT"
            snapshot = dict(record)
        self.feed.publish(
            ChangeEvent(SCORES_TABLE, change_type, dict(snapshot), old_record)
        )
        return status, snapshot

    def confirm_score(self, tournament_id: str, score_id: str) -> Dict[str, Any]:
        with self._lock:
            record = self._scores.get(score_id)
            if record is None or record["tournament_id"] != tournament_id:
                raise NotFoundError(f"score {score_id}")
            old_record = dict(record)
            record["confirmed"] = True
            snapshot = dict(record)
        self.feed.publish(ChangeEvent(SCORES_TABLE, "UPDATE", dict(snapshot), old_record))
        return snapshot

    def delete_score(self, tournament_id: str, score_id: str) -> Dict[str, Any]:
        with self._lock:
            record = self._scores.get(score_id)
            if record is None or record["tournament_id"] != tournament_id:
                raise NotFoundError(f"score {score_id}")
            del self._scores[score_id]
            self._score_keys.pop(
                (record["tournament_id"], record["hole_id"], record["player_id"]), None
            )
            snapshot = dict(record)
        self.feed.publish(ChangeEvent(SCORES_TABLE, "DELETE", {}, dict(snapshot)))
        return snapshot

    def score_records(self, tournament_id: str) -> List[Dict[str, Any]]:
        """Score rows with their hole and profile embedded, ordered by player."""

        with self._lock:
            rows: List[Dict[str, Any]] = []
            for record in self._scores.values():
                if record["tournament_id"] != tournament_id:
                    continue
                hole = self._holes.get(record["hole_id"])
                profile = self._profiles.get(record["player_id"])
                rows.append(
                    {
                        "id": record["id"],
                        "player_id": record["player_id"],
                        "strokes": record["strokes"],
                        "net_strokes": record["net_strokes"],
                        "confirmed": record["confirmed"],
                        "holes": (
                            {"hole_number": hole["hole_number"], "par": hole["par"]}
                            if hole
                            else None
                        ),
                        "profiles": (
                            {"full_name": profile["full_name"]} if profile else None
                        ),
                    }
                )
        rows.sort(key=lambda item: item["player_id"])
        return rows

    # -- DataStore ----------------------------------------------------------

    async def fetch_tournament_name(self, tournament_id: str) -> Optional[str]:
        tournament = self.get_tournament(tournament_id)
        return tournament["name"] if tournament else None

    async def fetch_scores(self, tournament_id: str) -> List[ScoreRow]:
        return normalize_score_rows(self.score_records(tournament_id))

    def subscribe(
        self, table: str, change_filter: ChangeFilter, callback: ChangeCallback
    ) -> Subscription:
        return self.feed.subscribe(table, change_filter, callback)

    def unsubscribe(self, handle: Subscription) -> None:
        self.feed.unsubscribe(handle)


__all__ = ["MemoryDataStore", "TOURNAMENT_STATUSES", "DEFAULT_STATUS"]
