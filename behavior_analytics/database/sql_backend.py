"""
SQLAlchemy-backed store: profiles, transfer ledger, daily activity, flags, counters.

Works with any SQLAlchemy URL (PostgreSQL in production, SQLite locally and in
tests). One ORM session per StoreSession; commits on success, rolls back on
error, so each engine operation is all-or-nothing.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager, nullcontext
from decimal import Decimal
from typing import Any, Iterator

from sqlalchemy import Boolean, Column, Integer, Numeric, String, create_engine, func, make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from behavior_analytics.analytics_logging import get_logger
from behavior_analytics.core.exceptions import AlreadyExists
from behavior_analytics.database.database import (
    StoreBackend,
    StoreSession,
    _check_counter,
)
from behavior_analytics.database.models import (
    AccountProfile,
    BehaviorFlags,
    DailyAggregate,
    GlobalCounters,
    TransferRecord,
)

logger = get_logger(__name__)

Base = declarative_base()

COUNTERS_ROW_ID = 1

# Enough digits for any uint256 token amount
AMOUNT_DIGITS = 78

# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class TokenAmount(TypeDecorator):
    """
    Unbounded non-negative integer amount. NUMERIC(78, 0) where the database has
    arbitrary-precision decimals; decimal text on SQLite, whose INTEGER is 64-bit.
    Always loads as a Python int.
    """

    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(AMOUNT_DIGITS))
        return dialect.type_descriptor(Numeric(AMOUNT_DIGITS, 0))

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        if dialect.name == "sqlite":
            return str(int(value))
        return Decimal(int(value))

    def process_result_value(self, value: Any, dialect: Any) -> int | None:
        return None if value is None else int(value)


class AccountProfileRow(Base):
    """One row per registered account."""

    __tablename__ = "account_profiles"

    account = Column(String(128), primary_key=True)
    total_transfers = Column(Integer, nullable=False, default=0)
    total_volume = Column(TokenAmount, nullable=False, default=0)
    first_activity = Column(Integer, nullable=False)
    last_activity = Column(Integer, nullable=False, index=True)
    average_hold_time = Column(Integer, nullable=False, default=0)
    risk_score = Column(Integer, nullable=False, default=0)
    loyalty_score = Column(Integer, nullable=False, default=0)
    is_flagged = Column(Boolean, nullable=False, default=False, index=True)

    def to_model(self) -> AccountProfile:
        return AccountProfile(
            account=self.account,
            total_transfers=self.total_transfers,
            total_volume=self.total_volume,
            first_activity=self.first_activity,
            last_activity=self.last_activity,
            average_hold_time=self.average_hold_time,
            risk_score=self.risk_score,
            loyalty_score=self.loyalty_score,
            is_flagged=self.is_flagged,
        )


class TransferRow(Base):
    """
    Transfer ledger (append-only). transfer_id is globally unique; the primary key
    is (account, transfer_id) to match lookups.
    """

    __tablename__ = "transfers"

    account = Column(String(128), primary_key=True)
    transfer_id = Column(Integer, primary_key=True, unique=True)
    amount = Column(TokenAmount, nullable=False)
    timestamp = Column(Integer, nullable=False, index=True)
    recipient = Column(String(128), nullable=False)
    transfer_type = Column(String(32), nullable=False)

    def to_model(self) -> TransferRecord:
        return TransferRecord(
            account=self.account,
            transfer_id=self.transfer_id,
            amount=self.amount,
            timestamp=self.timestamp,
            recipient=self.recipient,
            transfer_type=self.transfer_type,
        )


class DailyActivityRow(Base):
    """Per-account, per-day rollup."""

    __tablename__ = "daily_activity"

    account = Column(String(128), primary_key=True)
    day = Column(Integer, primary_key=True)
    transfer_count = Column(Integer, nullable=False)
    total_volume = Column(TokenAmount, nullable=False)
    unique_recipients = Column(Integer, nullable=False, default=1)

    def to_model(self) -> DailyAggregate:
        return DailyAggregate(
            account=self.account,
            day=self.day,
            transfer_count=self.transfer_count,
            total_volume=self.total_volume,
            unique_recipients=self.unique_recipients,
        )


class BehaviorFlagsRow(Base):
    """Latest flag snapshot per account."""

    __tablename__ = "behavior_flags"

    account = Column(String(128), primary_key=True)
    rapid_trading = Column(Boolean, nullable=False, default=False)
    large_volume = Column(Boolean, nullable=False, default=False)
    suspicious_pattern = Column(Boolean, nullable=False, default=False)
    whale_activity = Column(Boolean, nullable=False, default=False)
    dormant_reactivation = Column(Boolean, nullable=False, default=False)

    def to_model(self) -> BehaviorFlags:
        return BehaviorFlags(
            rapid_trading=self.rapid_trading,
            large_volume=self.large_volume,
            suspicious_pattern=self.suspicious_pattern,
            whale_activity=self.whale_activity,
            dormant_reactivation=self.dormant_reactivation,
        )


class GlobalCountersRow(Base):
    """Single row (id=1) holding process-wide totals and the transfer id sequence."""

    __tablename__ = "global_counters"

    id = Column(Integer, primary_key=True)
    total_accounts = Column(Integer, nullable=False, default=0)
    total_flagged_accounts = Column(Integer, nullable=False, default=0)
    average_risk_score = Column(Integer, nullable=False, default=0)
    next_transfer_id = Column(Integer, nullable=False, default=1)

    def to_model(self) -> GlobalCounters:
        return GlobalCounters(
            total_accounts=self.total_accounts,
            total_flagged_accounts=self.total_flagged_accounts,
            average_risk_score=self.average_risk_score,
            next_transfer_id=self.next_transfer_id,
        )


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------


class _SQLSession(StoreSession):
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_profile(self, account: str, *, for_update: bool = False) -> AccountProfile | None:
        q = self._session.query(AccountProfileRow).filter(AccountProfileRow.account == account)
        if for_update:
            q = q.with_for_update()
        row = q.first()
        return row.to_model() if row else None

    def create_profile(self, profile: AccountProfile) -> None:
        if self._session.get(AccountProfileRow, profile.account) is not None:
            raise AlreadyExists(f"account {profile.account} is already registered")
        self._session.add(AccountProfileRow(**profile.to_dict()))
        try:
            self._session.flush()
        except IntegrityError as e:
            raise AlreadyExists(f"account {profile.account} is already registered") from e

    def put_profile(self, profile: AccountProfile) -> None:
        self._session.merge(AccountProfileRow(**profile.to_dict()))
        self._session.flush()

    def append_transfer(self, record: TransferRecord) -> None:
        self._session.add(TransferRow(**record.to_dict()))
        self._session.flush()

    def get_transfer(self, account: str, transfer_id: int) -> TransferRecord | None:
        row = self._session.get(TransferRow, (account, transfer_id))
        return row.to_model() if row else None

    def count_transfers(self, account: str) -> int:
        return (
            self._session.query(func.count(TransferRow.transfer_id))
            .filter(TransferRow.account == account)
            .scalar()
            or 0
        )

    def get_daily_activity(self, account: str, day: int) -> DailyAggregate | None:
        row = self._session.get(DailyActivityRow, (account, day))
        return row.to_model() if row else None

    def put_daily_activity(self, aggregate: DailyAggregate) -> None:
        self._session.merge(DailyActivityRow(**aggregate.to_dict()))
        self._session.flush()

    def get_flags(self, account: str) -> BehaviorFlags | None:
        row = self._session.get(BehaviorFlagsRow, account)
        return row.to_model() if row else None

    def put_flags(self, account: str, flags: BehaviorFlags) -> None:
        self._session.merge(BehaviorFlagsRow(account=account, **flags.to_dict()))
        self._session.flush()

    def _counters_row(self) -> GlobalCountersRow:
        return (
            self._session.query(GlobalCountersRow)
            .filter(GlobalCountersRow.id == COUNTERS_ROW_ID)
            .with_for_update()
            .one()
        )

    def get_global_counters(self) -> GlobalCounters:
        row = self._session.get(GlobalCountersRow, COUNTERS_ROW_ID)
        return row.to_model()

    def allocate_transfer_id(self) -> int:
        row = self._counters_row()
        transfer_id = row.next_transfer_id
        row.next_transfer_id = transfer_id + 1
        return transfer_id

    def increment_counter(self, name: str, delta: int = 1) -> None:
        _check_counter(name)
        row = self._counters_row()
        setattr(row, name, getattr(row, name) + delta)


# -----------------------------------------------------------------------------
# Backend
# -----------------------------------------------------------------------------


def safe_url(url: str) -> str:
    """URL for log lines, password masked."""
    return make_url(url).render_as_string(hide_password=True)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_sqlite_memory(url: str) -> bool:
    return _is_sqlite(url) and (url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url)


class SQLAlchemyBackend(StoreBackend):
    """
    Store backed by SQLAlchemy. Row locks (SELECT ... FOR UPDATE) guard the
    counters row on servers that support them; SQLite allows a single writer,
    so sessions against SQLite are serialized in-process.
    """

    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        self._url = url
        connect_args: dict[str, Any] = {}
        if _is_sqlite(url):
            connect_args["check_same_thread"] = False
        if _is_sqlite_memory(url):
            engine_kwargs.setdefault("poolclass", StaticPool)
        else:
            engine_kwargs.setdefault("pool_pre_ping", True)
        self._engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        self._serial_lock: threading.RLock | None = threading.RLock() if _is_sqlite(url) else None
        logger.info("sql_store_engine", url=safe_url(url))

    @property
    def engine(self) -> Any:
        return self._engine

    def ensure_schema(self) -> None:
        """Create tables and the counters row. Safe to call on every startup."""
        Base.metadata.create_all(bind=self._engine)
        with self._session_scope() as session:
            if session.get(GlobalCountersRow, COUNTERS_ROW_ID) is None:
                session.add(GlobalCountersRow(id=COUNTERS_ROW_ID))
        logger.info("sql_store_init_db", tables=sorted(Base.metadata.tables))

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Context manager for a single ORM session. Commits on success, rolls back on error."""
        guard = self._serial_lock if self._serial_lock is not None else nullcontext()
        with guard:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        with self._session_scope() as session:
            yield _SQLSession(session)

    def dispose(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()
