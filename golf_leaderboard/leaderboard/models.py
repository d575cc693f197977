from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScoreColor(str, Enum):
    UNDER = "under"
    EVEN = "even"
    OVER = "over"


class LeaderboardState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LIVE = "live"
    REFRESHING = "refreshing"


class ScoreRow(BaseModel):
    """One score joined with its hole and the player's profile."""

    player_id: str
    player_name: str
    strokes: int
    net_strokes: Optional[int] = None
    hole_number: int
    par: int


class HoleDetail(BaseModel):
    hole_number: int
    par: int
    strokes: int
    net_strokes: Optional[int] = None


class StandingsEntry(BaseModel):
    player_id: str
    player_name: str
    total_strokes: int = 0
    holes_played: int = 0
    average_score: float = 0.0
    position: int = 0
    to_par: int = 0
    total_net_strokes: Optional[int] = None
    holes: List[HoleDetail] = Field(default_factory=list)


class LeaderboardSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tournament_id: Optional[str] = Field(default=None, alias="tournamentId")
    tournament_name: Optional[str] = Field(default=None, alias="tournamentName")
    state: LeaderboardState = LeaderboardState.IDLE
    live: bool = False
    standings: List[StandingsEntry] = Field(default_factory=list)
    error: Optional[str] = None
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @property
    def empty(self) -> bool:
        return not self.standings


__all__ = [
    "ScoreColor",
    "LeaderboardState",
    "ScoreRow",
    "HoleDetail",
    "StandingsEntry",
    "LeaderboardSnapshot",
]
