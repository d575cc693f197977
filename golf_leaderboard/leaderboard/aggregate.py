"""Aggregate per-hole score rows into ranked tournament standings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Union

from .models import HoleDetail, ScoreRow, StandingsEntry

logger = logging.getLogger(__name__)

RawScore = Union[ScoreRow, Mapping[str, Any]]


def _to_int(value: Any) -> int | None:
    """Whole-number coercion; booleans and fractional values are rejected."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip()) if not isinstance(value, float) else value
    except (TypeError, ValueError):
        return None
    if not number.is_integer():
        return None
    return int(number)


def _nested(raw: Mapping[str, Any], *keys: str) -> Mapping[str, Any] | None:
    for key in keys:
        value = raw.get(key)
        # PostgREST returns to-one embeds as objects, some clients wrap them in lists
        if isinstance(value, list) and value:
            value = value[0]
        if isinstance(value, Mapping):
            return value
    return None


def _coerce_row(raw: RawScore) -> ScoreRow | None:
    if isinstance(raw, ScoreRow):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        return None

    player_id = raw.get("player_id") or raw.get("playerId")
    if not player_id:
        return None

    hole = _nested(raw, "holes", "hole")
    if hole is not None:
        hole_number = _to_int(hole.get("hole_number"))
        par = _to_int(hole.get("par"))
    else:
        hole_number = _to_int(raw.get("hole_number"))
        par = _to_int(raw.get("par"))
    if hole_number is None or par is None:
        return None

    profile = _nested(raw, "profiles", "profile")
    if profile is not None:
        name_source = profile.get("full_name")
    else:
        name_source = raw.get("player_name")
    name = str(name_source).strip() if name_source is not None else ""
    if not name:
        return None

    strokes = _to_int(raw.get("strokes"))
    if strokes is None or strokes <= 0:
        return None

    return ScoreRow(
        player_id=str(player_id),
        player_name=name,
        strokes=strokes,
        net_strokes=_to_int(raw.get("net_strokes")),
        hole_number=hole_number,
        par=par,
    )


def normalize_score_rows(rows: Iterable[RawScore]) -> List[ScoreRow]:
    """Coerce raw store rows into :class:`ScoreRow`, dropping malformed ones."""

    normalized: List[ScoreRow] = []
    skipped = 0
    for raw in rows:
        row = _coerce_row(raw)
        if row is None:
            skipped += 1
            continue
        normalized.append(row)
    if skipped:
        logger.debug("skipped %d malformed score rows", skipped)
    return normalized


def average_score(total_strokes: int, holes_played: int) -> float:
    if holes_played <= 0:
        return 0.0
    return total_strokes / holes_played


@dataclass
class _PlayerCard:
    player_id: str
    player_name: str
    holes: Dict[int, HoleDetail] = field(default_factory=dict)

    def to_entry(self) -> StandingsEntry:
        details = sorted(self.holes.values(), key=lambda item: item.hole_number)
        total = sum(detail.strokes for detail in details)
        to_par = sum(detail.strokes - detail.par for detail in details)
        net_values = [detail.net_strokes for detail in details]
        if details and all(value is not None for value in net_values):
            total_net: int | None = sum(net_values)  # type: ignore[arg-type]
        else:
            total_net = None
        return StandingsEntry(
            player_id=self.player_id,
            player_name=self.player_name,
            total_strokes=total,
            holes_played=len(details),
            average_score=average_score(total, len(details)),
            to_par=to_par,
            total_net_strokes=total_net,
            holes=details,
        )


def compute_standings(rows: Iterable[RawScore]) -> List[StandingsEntry]:
    """Rank players by total strokes, lowest first.

    Players keep the order in which their first row was seen when totals tie
    (``sorted`` is stable). A repeated (player, hole) pair keeps the last row.
    """

    cards: Dict[str, _PlayerCard] = {}
    for row in normalize_score_rows(rows):
        card = cards.get(row.player_id)
        if card is None:
            card = _PlayerCard(player_id=row.player_id, player_name=row.player_name)
            cards[row.player_id] = card
        if row.hole_number in card.holes:
            logger.debug(
                "duplicate score for player=%s hole=%s; keeping latest",
                row.player_id,
                row.hole_number,
            )
        card.holes[row.hole_number] = HoleDetail(
            hole_number=row.hole_number,
            par=row.par,
            strokes=row.strokes,
            net_strokes=row.net_strokes,
        )

    entries = sorted(
        (card.to_entry() for card in cards.values()),
        key=lambda entry: entry.total_strokes,
    )
    for index, entry in enumerate(entries):
        entry.position = index + 1
    return entries


__all__ = ["compute_standings", "normalize_score_rows", "average_score"]
