"""
Store layer: account profiles, transfer ledger, daily aggregates, flags, counters.

In-memory backend by default; SQLAlchemyBackend for persistent storage.
"""

from behavior_analytics.database.database import (
    Database,
    InMemoryBackend,
    StoreBackend,
    StoreSession,
    get_database,
)
from behavior_analytics.database.models import (
    AccountProfile,
    BehaviorFlags,
    DailyAggregate,
    GlobalCounters,
    TransferRecord,
)

__all__ = [
    "Database",
    "InMemoryBackend",
    "StoreBackend",
    "StoreSession",
    "get_database",
    "AccountProfile",
    "BehaviorFlags",
    "DailyAggregate",
    "GlobalCounters",
    "TransferRecord",
]
