"""Data store contract consumed by the leaderboard."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from golf_leaderboard.leaderboard.models import ScoreRow

SCORES_TABLE = "scores"
CHANGE_TYPES = ("INSERT", "UPDATE", "DELETE")


class StoreError(RuntimeError):
    """Raised when the data store cannot be reached or rejects a query."""


class SubscriptionError(StoreError):
    """Raised when the change feed cannot be subscribed to."""


class NotFoundError(KeyError):
    pass


@dataclass(frozen=True)
class ChangeFilter:
    column: str
    value: str

    @classmethod
    def parse(cls, text: str) -> "ChangeFilter":
        """Parse a ``column=eq.value`` filter expression."""

        column, sep, rest = text.partition("=")
        if not sep or not rest.startswith("eq.") or not column.strip():
            raise ValueError(f"unsupported change filter: {text!r}")
        return cls(column=column.strip(), value=rest[len("eq.") :])

    def matches(self, record: Mapping[str, Any] | None) -> bool:
        if not record:
            return False
        value = record.get(self.column)
        return value is not None and str(value) == self.value

    def __str__(self) -> str:
        return f"{self.column}=eq.{self.value}"


def tournament_filter(tournament_id: str) -> ChangeFilter:
    return ChangeFilter(column="tournament_id", value=str(tournament_id))


@dataclass
class ChangeEvent:
    table: str
    type: str
    record: Dict[str, Any] = field(default_factory=dict)
    old_record: Dict[str, Any] = field(default_factory=dict)

    def matches(self, change_filter: ChangeFilter) -> bool:
        return change_filter.matches(self.record) or change_filter.matches(
            self.old_record
        )


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle for a change-feed subscription; ``release`` is idempotent."""

    def __init__(
        self,
        table: str,
        change_filter: ChangeFilter,
        callback: ChangeCallback,
        on_release: Callable[["Subscription"], None] | None = None,
    ) -> None:
        self.table = table
        self.filter = change_filter
        self.callback = callback
        self._on_release = on_release
        self._active = True
        self._lock = Lock()

    @property
    def active(self) -> bool:
        return self._active

    def release(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            on_release, self._on_release = self._on_release, None
        if on_release is not None:
            on_release(self)


class DataStore(Protocol):
    async def fetch_tournament_name(self, tournament_id: str) -> Optional[str]:
        ...

    async def fetch_scores(self, tournament_id: str) -> List[ScoreRow]:
        ...

    def subscribe(
        self, table: str, change_filter: ChangeFilter, callback: ChangeCallback
    ) -> Subscription:
        ...

    def unsubscribe(self, handle: Subscription) -> None:
        ...


__all__ = [
    "SCORES_TABLE",
    "CHANGE_TYPES",
    "StoreError",
    "SubscriptionError",
    "NotFoundError",
    "ChangeFilter",
    "ChangeEvent",
    "ChangeCallback",
    "Subscription",
    "DataStore",
    "tournament_filter",
]
