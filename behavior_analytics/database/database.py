"""
Store abstraction for account profiles, transfer ledger, daily aggregates,
behavior flags and global counters.

All access goes through a StoreSession opened by a StoreBackend. A session is
one atomic unit of work: its writes become visible all at once when the
session exits normally and are discarded if it raises. The in-memory backend
is the default; the SQLAlchemy backend (sql_backend.py) persists to any
SQLAlchemy URL.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager, contextmanager
from dataclasses import replace
from typing import Iterator

from behavior_analytics.analytics_logging import get_logger
from behavior_analytics.core.exceptions import AlreadyExists
from behavior_analytics.database.models import (
    AccountProfile,
    BehaviorFlags,
    DailyAggregate,
    GlobalCounters,
    TransferRecord,
)

logger = get_logger(__name__)

COUNTER_FIELDS = ("total_accounts", "total_flagged_accounts", "average_risk_score")


# -----------------------------------------------------------------------------
# Abstract session and backend
# -----------------------------------------------------------------------------


class StoreSession(ABC):
    """One atomic unit of work against the store."""

    # --- Account profiles ---

    @abstractmethod
    def get_profile(self, account: str, *, for_update: bool = False) -> AccountProfile | None:
        """Return the profile for account, or None. for_update locks the row where supported."""
        ...

    @abstractmethod
    def create_profile(self, profile: AccountProfile) -> None:
        """Insert a new profile. Raises AlreadyExists if one exists for the account."""
        ...

    @abstractmethod
    def put_profile(self, profile: AccountProfile) -> None:
        """Unconditionally overwrite the profile (no merge)."""
        ...

    # --- Transfer ledger ---

    @abstractmethod
    def append_transfer(self, record: TransferRecord) -> None:
        """Append an immutable ledger row keyed by (account, transfer_id)."""
        ...

    @abstractmethod
    def get_transfer(self, account: str, transfer_id: int) -> TransferRecord | None:
        ...

    @abstractmethod
    def count_transfers(self, account: str) -> int:
        """Number of ledger rows for account."""
        ...

    # --- Daily aggregates ---

    @abstractmethod
    def get_daily_activity(self, account: str, day: int) -> DailyAggregate | None:
        ...

    @abstractmethod
    def put_daily_activity(self, aggregate: DailyAggregate) -> None:
        """Insert or overwrite the (account, day) aggregate."""
        ...

    # --- Behavior flags ---

    @abstractmethod
    def get_flags(self, account: str) -> BehaviorFlags | None:
        ...

    @abstractmethod
    def put_flags(self, account: str, flags: BehaviorFlags) -> None:
        ...

    # --- Global counters ---

    @abstractmethod
    def get_global_counters(self) -> GlobalCounters:
        ...

    @abstractmethod
    def allocate_transfer_id(self) -> int:
        """Return the current next_transfer_id and advance the sequence by one."""
        ...

    @abstractmethod
    def increment_counter(self, name: str, delta: int = 1) -> None:
        """Atomically add delta to one of COUNTER_FIELDS."""
        ...


class StoreBackend(ABC):
    """Abstract persistence backend; implement for memory or SQL."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables / initial counters if they do not exist."""
        ...

    @abstractmethod
    def session(self) -> AbstractContextManager[StoreSession]:
        """Context manager yielding a StoreSession; commits on success, rolls back on error."""
        ...


def _check_counter(name: str) -> None:
    if name not in COUNTER_FIELDS:
        raise ValueError(f"unknown counter {name!r}")


# -----------------------------------------------------------------------------
# In-memory backend
# -----------------------------------------------------------------------------


class _MemorySession(StoreSession):
    """Stages writes over the backend's committed state; applied on commit."""

    def __init__(self, backend: InMemoryBackend) -> None:
        self._backend = backend
        self._profiles: dict[str, AccountProfile] = {}
        self._transfers: dict[tuple[str, int], TransferRecord] = {}
        self._daily: dict[tuple[str, int], DailyAggregate] = {}
        self._flags: dict[str, BehaviorFlags] = {}
        self._counters: GlobalCounters | None = None

    def get_profile(self, account: str, *, for_update: bool = False) -> AccountProfile | None:
        if account in self._profiles:
            return replace(self._profiles[account])
        profile = self._backend._profiles.get(account)
        return replace(profile) if profile is not None else None

    def create_profile(self, profile: AccountProfile) -> None:
        if self.get_profile(profile.account) is not None:
            raise AlreadyExists(f"account {profile.account} is already registered")
        self._profiles[profile.account] = replace(profile)

    def put_profile(self, profile: AccountProfile) -> None:
        self._profiles[profile.account] = replace(profile)

    def append_transfer(self, record: TransferRecord) -> None:
        key = (record.account, record.transfer_id)
        if key in self._transfers or key in self._backend._transfers:
            raise ValueError(f"transfer {key} already recorded")
        self._transfers[key] = record

    def get_transfer(self, account: str, transfer_id: int) -> TransferRecord | None:
        key = (account, transfer_id)
        return self._transfers.get(key) or self._backend._transfers.get(key)

    def count_transfers(self, account: str) -> int:
        keys = set(self._transfers) | set(self._backend._transfers)
        return sum(1 for acct, _ in keys if acct == account)

    def get_daily_activity(self, account: str, day: int) -> DailyAggregate | None:
        key = (account, day)
        aggregate = self._daily.get(key) or self._backend._daily.get(key)
        return replace(aggregate) if aggregate is not None else None

    def put_daily_activity(self, aggregate: DailyAggregate) -> None:
        self._daily[(aggregate.account, aggregate.day)] = replace(aggregate)

    def get_flags(self, account: str) -> BehaviorFlags | None:
        if account in self._flags:
            return self._flags[account]
        return self._backend._flags.get(account)

    def put_flags(self, account: str, flags: BehaviorFlags) -> None:
        self._flags[account] = flags

    def _staged_counters(self) -> GlobalCounters:
        if self._counters is None:
            self._counters = replace(self._backend._counters)
        return self._counters

    def get_global_counters(self) -> GlobalCounters:
        return replace(self._staged_counters())

    def allocate_transfer_id(self) -> int:
        counters = self._staged_counters()
        transfer_id = counters.next_transfer_id
        counters.next_transfer_id += 1
        return transfer_id

    def increment_counter(self, name: str, delta: int = 1) -> None:
        _check_counter(name)
        counters = self._staged_counters()
        setattr(counters, name, getattr(counters, name) + delta)

    def _apply(self) -> None:
        b = self._backend
        b._profiles.update(self._profiles)
        b._transfers.update(self._transfers)
        b._daily.update(self._daily)
        b._flags.update(self._flags)
        if self._counters is not None:
            b._counters = self._counters


class InMemoryBackend(StoreBackend):
    """
    Process-local store. Sessions hold the store lock for their whole lifetime,
    so they are serialized and readers never see a half-applied session.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._profiles: dict[str, AccountProfile] = {}
        self._transfers: dict[tuple[str, int], TransferRecord] = {}
        self._daily: dict[tuple[str, int], DailyAggregate] = {}
        self._flags: dict[str, BehaviorFlags] = {}
        self._counters = GlobalCounters()

    def ensure_schema(self) -> None:
        return None

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        with self._lock:
            session = _MemorySession(self)
            yield session
            session._apply()


# -----------------------------------------------------------------------------
# Database facade: single entrypoint; backend is swappable.
# -----------------------------------------------------------------------------


class Database:
    """
    Store facade used by the engine.

    Uses a StoreBackend (in-memory by default); pass SQLAlchemyBackend for persistence.
    """

    def __init__(self, backend: StoreBackend) -> None:
        self._backend = backend

    @property
    def backend(self) -> StoreBackend:
        return self._backend

    def ensure_schema(self) -> None:
        """Create tables and initial counters if they do not exist."""
        self._backend.ensure_schema()

    @contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        """Open one atomic unit of work."""
        with self._backend.session() as session:
            yield session


def get_database(url: str | None = None) -> Database:
    """
    Return a ready Database.

    url: SQLAlchemy URL (e.g. "sqlite:///analytics.db"). None: in-memory store.
    """
    if url is None:
        backend: StoreBackend = InMemoryBackend()
    else:
        from behavior_analytics.database.sql_backend import SQLAlchemyBackend

        backend = SQLAlchemyBackend(url)
    db = Database(backend)
    db.ensure_schema()
    logger.info("store_schema_ready", backend=type(backend).__name__)
    return db
