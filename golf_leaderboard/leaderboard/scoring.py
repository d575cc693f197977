"""Score-to-par helpers used when presenting standings."""

from __future__ import annotations

from .models import ScoreColor

_LABELS = {
    -2: "Eagle",
    -1: "Birdie",
    0: "Par",
    1: "Bogey",
    2: "Double Bogey",
}


def score_to_par_label(strokes: int, par: int) -> str:
    diff = int(strokes) - int(par)
    label = _LABELS.get(diff)
    if label is not None:
        return label
    return f"+{diff}" if diff > 0 else str(diff)


def classify_score_color(strokes: int, par: int) -> ScoreColor:
    diff = int(strokes) - int(par)
    if diff < 0:
        return ScoreColor.UNDER
    if diff == 0:
        return ScoreColor.EVEN
    return ScoreColor.OVER


__all__ = ["score_to_par_label", "classify_score_color"]
