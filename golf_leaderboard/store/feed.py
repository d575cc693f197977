from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, List

from .base import (
    CHANGE_TYPES,
    ChangeCallback,
    ChangeEvent,
    ChangeFilter,
    Subscription,
)

logger = logging.getLogger(__name__)


class ChangeFeed:
    """In-process row change notifications keyed by table."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._lock = Lock()

    def subscribe(
        self, table: str, change_filter: ChangeFilter, callback: ChangeCallback
    ) -> Subscription:
        handle = Subscription(table, change_filter, callback, on_release=self._drop)
        with self._lock:
            self._subscribers.setdefault(table, []).append(handle)
        return handle

    def unsubscribe(self, handle: Subscription) -> None:
        handle.release()

    def _drop(self, handle: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(handle.table)
            if not subscribers:
                return
            if handle in subscribers:
                subscribers.remove(handle)
            if not subscribers:
                self._subscribers.pop(handle.table, None)

    def publish(self, event: ChangeEvent) -> int:
        if event.type not in CHANGE_TYPES:
            raise ValueError(f"unknown change type: {event.type}")
        with self._lock:
            handles = list(self._subscribers.get(event.table, ()))
        delivered = 0
        for handle in handles:
            if not handle.active or not event.matches(handle.filter):
                continue
            try:
                handle.callback(event)
            except Exception:
                logger.exception(
                    "change subscriber failed for %s (%s)", event.table, handle.filter
                )
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, table: str | None = None) -> int:
        with self._lock:
            if table is not None:
                return len(self._subscribers.get(table, ()))
            return sum(len(items) for items in self._subscribers.values())

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()


__all__ = ["ChangeFeed"]
