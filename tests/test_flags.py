"""
Pytest tests for the flag classifier (classify_flags / update_flags).
"""

from __future__ import annotations

from behavior_analytics.config import EngineConfig
from behavior_analytics.database import AccountProfile, BehaviorFlags, DailyAggregate
from behavior_analytics.engine.flags import (
    FLAG_DORMANT_REACTIVATION,
    FLAG_LARGE_VOLUME,
    FLAG_RAPID_TRADING,
    FLAG_SUSPICIOUS_PATTERN,
    FLAG_WHALE_ACTIVITY,
    classify_flags,
)

CONFIG = EngineConfig()


def _profile(total_volume: int = 0, last_activity: int = 0) -> AccountProfile:
    return AccountProfile(account="acct", total_volume=total_volume, last_activity=last_activity)


def _daily(transfer_count: int) -> DailyAggregate:
    return DailyAggregate(account="acct", day=0, transfer_count=transfer_count, total_volume=0)


def test_quiet_transfer_sets_no_flags():
    """Small amount, low daily count, recent activity -> all flags false."""
    flags = classify_flags(_profile(), 10, _daily(1), 5, CONFIG)
    assert flags == BehaviorFlags()
    assert flags.active() == []


def test_all_flags_fire():
    """Each threshold exceeded by one -> every flag set."""
    flags = classify_flags(
        _profile(total_volume=1_000_001, last_activity=0),
        100_001,
        _daily(51),
        14_401,
        CONFIG,
    )
    assert flags.active() == [
        FLAG_RAPID_TRADING,
        FLAG_LARGE_VOLUME,
        FLAG_SUSPICIOUS_PATTERN,
        FLAG_WHALE_ACTIVITY,
        FLAG_DORMANT_REACTIVATION,
    ]


def test_thresholds_are_strict():
    """Values exactly at a threshold do not trigger the flag."""
    flags = classify_flags(
        _profile(total_volume=1_000_000, last_activity=100),
        100_000,
        _daily(50),
        100 + 14_400,
        CONFIG,
    )
    assert flags.active() == []


def test_suspicious_requires_rapid_and_large():
    """suspicious_pattern is the AND of rapid_trading and large_volume."""
    rapid_only = classify_flags(_profile(), 1, _daily(60), 0, CONFIG)
    assert rapid_only.rapid_trading and not rapid_only.suspicious_pattern

    large_only = classify_flags(_profile(), 500_000, _daily(1), 0, CONFIG)
    assert large_only.large_volume and not large_only.suspicious_pattern

    both = classify_flags(_profile(), 500_000, _daily(60), 0, CONFIG)
    assert both.suspicious_pattern


def test_missing_daily_aggregate_is_not_rapid():
    flags = classify_flags(_profile(), 1, None, 0, CONFIG)
    assert flags.rapid_trading is False


def test_custom_thresholds():
    """Large-volume cutoff is whale_threshold // 10; daily limit is configurable."""
    config = EngineConfig(max_transfers_per_day=2, whale_threshold=1_000, dormancy_period=10)
    flags = classify_flags(_profile(total_volume=1_001, last_activity=0), 101, _daily(3), 11, config)
    assert flags.rapid_trading
    assert flags.large_volume
    assert flags.whale_activity
    assert flags.dormant_reactivation
    assert config.large_volume_threshold == 100


def test_classification_is_deterministic():
    """Same profile + aggregate -> identical flags on repeated calls."""
    profile = _profile(total_volume=2_000_000, last_activity=3)
    daily = _daily(70)
    first = classify_flags(profile, 250_000, daily, 10, CONFIG)
    for _ in range(5):
        assert classify_flags(profile, 250_000, daily, 10, CONFIG) == first
