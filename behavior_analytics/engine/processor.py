"""
Transfer processor: registration, transfer recording, and read accessors.

Each mutation runs under the account's lock and inside one store transaction:
ledger write, daily rollup, flags, scores, profile commit and counter updates
become visible together or not at all. Mutations require the caller to pass
the authorization predicate (by default: caller == configured operator).
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Callable

from behavior_analytics.analytics_logging import bind_account, get_logger
from behavior_analytics.config import EngineConfig, Settings, get_settings
from behavior_analytics.core.exceptions import (
    AlreadyExists,
    InvalidAmount,
    NotFound,
    Unauthorized,
)
from behavior_analytics.database import (
    AccountProfile,
    BehaviorFlags,
    DailyAggregate,
    Database,
    GlobalCounters,
    TransferRecord,
    get_database,
)
from behavior_analytics.engine.activity import (
    append_transfer,
    block_height_clock,
    day_for,
    upsert_daily_activity,
)
from behavior_analytics.engine.flags import update_flags
from behavior_analytics.engine.scoring import (
    calculate_loyalty_score,
    calculate_risk_score,
    is_high_risk,
)

logger = get_logger(__name__)


def operator_only(operator: str) -> Callable[[str], bool]:
    """Authorization predicate admitting exactly one principal."""

    def _is_operator(caller: str) -> bool:
        return caller == operator

    return _is_operator


class _AccountLocks:
    """Lazily created per-account locks."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, account: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(account)
            if lock is None:
                lock = self._locks[account] = threading.Lock()
            return lock


class BehaviorAnalyticsEngine:
    """
    Scoring and flagging engine over a Database.

    db: store facade (in-memory if omitted).
    config: thresholds; defaults match EngineConfig().
    authorize: predicate on the caller principal for register/record_transfer.
    clock: returns the current block height when an operation gets no explicit now.
    """

    def __init__(
        self,
        db: Database | None = None,
        config: EngineConfig | None = None,
        *,
        authorize: Callable[[str], bool] | None = None,
        operator: str = "operator",
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._db = db if db is not None else get_database()
        self._config = config or EngineConfig()
        self._authorize = authorize or operator_only(operator)
        self._clock = clock or block_height_clock()
        self._locks = _AccountLocks()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "BehaviorAnalyticsEngine":
        """Build an engine (store, operator, clock, tunables) from env settings."""
        settings = settings or get_settings()
        return cls(
            get_database(settings.database_url),
            settings.engine,
            operator=settings.operator,
            clock=block_height_clock(settings.block_time_sec),
        )

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def db(self) -> Database:
        return self._db

    def _check_caller(self, caller: str, operation: str) -> None:
        if not self._authorize(caller):
            logger.warning("unauthorized_caller", caller=caller or "", operation=operation)
            raise Unauthorized(f"caller may not {operation}")

    # --- Mutations ---

    def register(self, caller: str, account: str, *, now: int | None = None) -> None:
        """Create a zeroed profile for account. Raises Unauthorized or AlreadyExists."""
        with bind_account(account):
            self._check_caller(caller, "register")
            now = now if now is not None else self._clock()
            with self._locks.get(account):
                try:
                    with self._db.transaction() as tx:
                        tx.create_profile(
                            AccountProfile(account=account, first_activity=now, last_activity=now)
                        )
                        tx.increment_counter("total_accounts")
                except AlreadyExists:
                    logger.info("registration_rejected", reason="already_exists")
                    raise
            logger.info("account_registered", first_activity=now)

    def record_transfer(
        self,
        caller: str,
        account: str,
        recipient: str,
        amount: int,
        transfer_type: str,
        *,
        now: int | None = None,
    ) -> int:
        """
        Record one outgoing transfer and refresh the account's flags and scores.

        Returns the allocated transfer id. Raises Unauthorized, InvalidAmount,
        NotFound, or ValueError if now precedes the account's last activity.
        """
        with bind_account(account):
            self._check_caller(caller, "record_transfer")
            if amount <= 0:
                logger.info("transfer_rejected", reason="invalid_amount", amount=amount)
                raise InvalidAmount(f"amount must be positive, got {amount}")
            # Profiles are never deleted, so an unknown account is rejected
            # without allocating a lock for it.
            if self.get_profile(account) is None:
                logger.info("transfer_rejected", reason="not_found")
                raise NotFound(f"account {account} is not registered")
            now = now if now is not None else self._clock()
            with self._locks.get(account):
                return self._apply_transfer(account, recipient, amount, transfer_type, now)

    def _apply_transfer(self, account: str, recipient: str, amount: int, transfer_type: str, now: int) -> int:
        cfg = self._config
        with self._db.transaction() as tx:
            profile = tx.get_profile(account, for_update=True)
            if profile is None:
                raise NotFound(f"account {account} is not registered")
            if now < profile.last_activity:
                logger.info("transfer_rejected", reason="stale_timestamp", now=now, last_activity=profile.last_activity)
                raise ValueError(
                    f"timestamp {now} precedes last activity {profile.last_activity} for {account}"
                )

            time_held = now - profile.last_activity
            average_hold_time = (
                profile.average_hold_time * profile.total_transfers + time_held
            ) // (profile.total_transfers + 1)

            transfer_id = tx.allocate_transfer_id()
            append_transfer(tx, account, transfer_id, amount, now, recipient, transfer_type)
            day = day_for(now, cfg.blocks_per_day)
            daily = upsert_daily_activity(tx, account, day, amount)
            flags = update_flags(tx, profile, amount, now, cfg)

            updated = replace(
                profile,
                total_transfers=profile.total_transfers + 1,
                total_volume=profile.total_volume + amount,
                last_activity=now,
                average_hold_time=average_hold_time,
            )
            updated.risk_score = calculate_risk_score(
                updated.total_volume, profile.total_transfers, flags, cfg
            )
            updated.loyalty_score = calculate_loyalty_score(updated, cfg)
            updated.is_flagged = is_high_risk(updated.risk_score, cfg)
            tx.put_profile(updated)

            newly_flagged = updated.is_flagged and not profile.is_flagged
            if newly_flagged:
                tx.increment_counter("total_flagged_accounts")

        logger.info(
            "transfer_recorded",
            transfer_id=transfer_id,
            recipient=recipient,
            amount=amount,
            day=day,
            daily_transfer_count=daily.transfer_count,
            risk_score=updated.risk_score,
            loyalty_score=updated.loyalty_score,
            flags=flags.active(),
        )
        if newly_flagged:
            logger.warning(
                "account_flagged",
                risk_score=updated.risk_score,
                threshold=cfg.risk_high_threshold,
            )
        return transfer_id

    # --- Read accessors ---

    def get_profile(self, account: str) -> AccountProfile | None:
        with self._db.transaction() as tx:
            return tx.get_profile(account)

    def get_flags(self, account: str) -> BehaviorFlags | None:
        with self._db.transaction() as tx:
            return tx.get_flags(account)

    def get_transfer(self, account: str, transfer_id: int) -> TransferRecord | None:
        with self._db.transaction() as tx:
            return tx.get_transfer(account, transfer_id)

    def get_daily_activity(self, account: str, day: int) -> DailyAggregate | None:
        with self._db.transaction() as tx:
            return tx.get_daily_activity(account, day)

    def get_global_analytics(self) -> GlobalCounters:
        with self._db.transaction() as tx:
            return tx.get_global_counters()
