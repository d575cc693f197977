from .base import (
    SCORES_TABLE,
    ChangeEvent,
    ChangeFilter,
    DataStore,
    NotFoundError,
    StoreError,
    Subscription,
    SubscriptionError,
    tournament_filter,
)
from .feed import ChangeFeed
from .memory import TOURNAMENT_STATUSES, MemoryDataStore
from .rest import RestDataStore

__all__ = [
    "SCORES_TABLE",
    "ChangeEvent",
    "ChangeFilter",
    "DataStore",
    "NotFoundError",
    "StoreError",
    "Subscription",
    "SubscriptionError",
    "tournament_filter",
    "ChangeFeed",
    "MemoryDataStore",
    "RestDataStore",
    "TOURNAMENT_STATUSES",
]
