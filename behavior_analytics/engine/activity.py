"""
Transfer ledger and daily activity rollups.

Timestamps are block heights; a day is blocks_per_day consecutive blocks.
The default clock derives the current block height from wall-clock time.
"""

from __future__ import annotations

import time
from typing import Callable

from behavior_analytics.database import DailyAggregate, StoreSession, TransferRecord


def block_height_clock(block_time_sec: int = 600) -> Callable[[], int]:
    """Return a clock yielding the current block height (unix seconds // block time)."""

    def _now() -> int:
        return int(time.time()) // block_time_sec

    return _now


def day_for(timestamp: int, blocks_per_day: int) -> int:
    return timestamp // blocks_per_day


def append_transfer(
    tx: StoreSession,
    account: str,
    transfer_id: int,
    amount: int,
    timestamp: int,
    recipient: str,
    transfer_type: str,
) -> TransferRecord:
    """Write one immutable ledger row and return it."""
    record = TransferRecord(
        account=account,
        transfer_id=transfer_id,
        amount=amount,
        timestamp=timestamp,
        recipient=recipient,
        transfer_type=transfer_type,
    )
    tx.append_transfer(record)
    return record


def upsert_daily_activity(tx: StoreSession, account: str, day: int, amount: int) -> DailyAggregate:
    """
    Add one transfer to the (account, day) rollup, creating it on the day's first transfer.

    unique_recipients starts at 1 and is left unchanged on later transfers.
    """
    aggregate = tx.get_daily_activity(account, day)
    if aggregate is None:
        aggregate = DailyAggregate(
            account=account,
            day=day,
            transfer_count=1,
            total_volume=amount,
            unique_recipients=1,
        )
    else:
        aggregate.transfer_count += 1
        aggregate.total_volume += amount
    tx.put_daily_activity(aggregate)
    return aggregate
