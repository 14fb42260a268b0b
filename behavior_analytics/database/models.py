"""
Domain models for store entities.

Account profiles, transfer ledger rows, daily aggregates, behavior flags and
global counters. Used by the store backends and the engine; no ORM coupling so
backends stay swappable. All timestamps are block heights.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class AccountProfile:
    """Running profile for one account; created on registration, never deleted."""

    account: str
    total_transfers: int = 0
    total_volume: int = 0
    first_activity: int = 0
    """Block height at registration; immutable."""
    last_activity: int = 0
    """Block height of the most recent transfer (or registration)."""
    average_hold_time: int = 0
    risk_score: int = 0
    loyalty_score: int = 0
    is_flagged: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TransferRecord:
    """Single immutable ledger row, keyed by (account, transfer_id)."""

    account: str
    transfer_id: int
    amount: int
    timestamp: int
    recipient: str
    transfer_type: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DailyAggregate:
    """
    Per-account, per-day rollup.

    unique_recipients is set to 1 when the day's row is created and is not
    incremented on later transfers, even to a different recipient.
    """

    account: str
    day: int
    transfer_count: int
    total_volume: int
    unique_recipients: int = 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BehaviorFlags:
    """Point-in-time flag snapshot; replaced wholesale on every transfer."""

    rapid_trading: bool = False
    large_volume: bool = False
    suspicious_pattern: bool = False
    whale_activity: bool = False
    dormant_reactivation: bool = False

    def active(self) -> list[str]:
        """Names of the flags that are set, in declaration order."""
        return [name for name, value in asdict(self).items() if value]

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass
class GlobalCounters:
    """Process-wide totals. total_flagged_accounts counts accounts ever flagged."""

    total_accounts: int = 0
    total_flagged_accounts: int = 0
    average_risk_score: int = 0
    next_transfer_id: int = 1

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
