"""
Flag classifier: five boolean behavior flags per transfer.

Flags are a point-in-time snapshot recomputed on every transfer from the
account's pre-update profile, the amount just processed and the day's
post-upsert activity rollup. They replace the previous snapshot wholesale.
"""

from __future__ import annotations

from behavior_analytics.analytics_logging import get_logger
from behavior_analytics.config import EngineConfig
from behavior_analytics.database import AccountProfile, BehaviorFlags, DailyAggregate, StoreSession
from behavior_analytics.engine.activity import day_for

logger = get_logger(__name__)

FLAG_RAPID_TRADING = "rapid_trading"
FLAG_LARGE_VOLUME = "large_volume"
FLAG_SUSPICIOUS_PATTERN = "suspicious_pattern"
FLAG_WHALE_ACTIVITY = "whale_activity"
FLAG_DORMANT_REACTIVATION = "dormant_reactivation"


def classify_flags(
    profile: AccountProfile,
    amount: int,
    daily: DailyAggregate | None,
    now: int,
    config: EngineConfig,
) -> BehaviorFlags:
    """
    Compute flags from state. Pure: same inputs always give the same flags.

    profile must be the pre-update profile: whale_activity reads cumulative
    volume before this transfer and dormant_reactivation the gap since the
    previous activity.
    """
    transfer_count = daily.transfer_count if daily is not None else 0
    rapid_trading = transfer_count > config.max_transfers_per_day
    large_volume = amount > config.large_volume_threshold
    return BehaviorFlags(
        rapid_trading=rapid_trading,
        large_volume=large_volume,
        suspicious_pattern=rapid_trading and large_volume,
        whale_activity=profile.total_volume > config.whale_threshold,
        dormant_reactivation=(now - profile.last_activity) > config.dormancy_period,
    )


def update_flags(
    tx: StoreSession,
    profile: AccountProfile,
    amount: int,
    now: int,
    config: EngineConfig,
) -> BehaviorFlags:
    """Look up today's rollup, classify, and overwrite the account's stored flags."""
    daily = tx.get_daily_activity(profile.account, day_for(now, config.blocks_per_day))
    flags = classify_flags(profile, amount, daily, now, config)
    tx.put_flags(profile.account, flags)
    logger.debug(
        "flags_updated",
        flags=flags.active(),
        daily_transfer_count=daily.transfer_count if daily is not None else 0,
    )
    return flags
