"""Tournament standings: aggregation, ranking and score-to-par helpers.

The live, feed-driven view lives in :mod:`golf_leaderboard.leaderboard.live`.
"""

from .aggregate import average_score, compute_standings, normalize_score_rows
from .models import (
    HoleDetail,
    LeaderboardSnapshot,
    LeaderboardState,
    ScoreColor,
    ScoreRow,
    StandingsEntry,
)
from .scoring import classify_score_color, score_to_par_label

__all__ = [
    "HoleDetail",
    "LeaderboardSnapshot",
    "LeaderboardState",
    "ScoreColor",
    "ScoreRow",
    "StandingsEntry",
    "average_score",
    "compute_standings",
    "normalize_score_rows",
    "classify_score_color",
    "score_to_par_label",
]
