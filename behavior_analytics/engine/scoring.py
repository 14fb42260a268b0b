"""
Composite scorer: risk and loyalty scores.

Risk: volume (25) + frequency (25) + sum of flag weights. No clamp; the
suspicious_pattern weight stacks on top of the two flags it is derived from.
Loyalty: duration (max 40) + consistency (max 30) + activity (30 or 10).
Integer division truncates toward zero in the prorated components.
Both scores are recomputed from scratch on every transfer.
"""

from __future__ import annotations

from behavior_analytics.config import EngineConfig
from behavior_analytics.database import AccountProfile, BehaviorFlags
from behavior_analytics.engine.flags import (
    FLAG_DORMANT_REACTIVATION,
    FLAG_LARGE_VOLUME,
    FLAG_RAPID_TRADING,
    FLAG_SUSPICIOUS_PATTERN,
    FLAG_WHALE_ACTIVITY,
)

VOLUME_POINTS = 25
FREQUENCY_POINTS = 25
FREQUENCY_MIN_TRANSFERS = 100

FLAG_WEIGHTS = {
    FLAG_RAPID_TRADING: 10,
    FLAG_LARGE_VOLUME: 10,
    FLAG_SUSPICIOUS_PATTERN: 15,
    FLAG_WHALE_ACTIVITY: 5,
    FLAG_DORMANT_REACTIVATION: 10,
}

DURATION_MAX = 40
CONSISTENCY_MAX = 30
CONSISTENCY_FULL_HOLD = 86400
ACTIVITY_HEALTHY = 30
ACTIVITY_OTHER = 10
# Exclusive bounds for the "healthy" transfer count band
ACTIVITY_MIN_TRANSFERS = 5
ACTIVITY_MAX_TRANSFERS = 50


def risk_components(
    total_volume: int,
    prior_transfers: int,
    flags: BehaviorFlags,
    config: EngineConfig,
) -> dict[str, int]:
    """
    Per-component risk points.

    total_volume is cumulative volume including the current transfer;
    prior_transfers is the transfer count before it.
    """
    flag_points = sum(FLAG_WEIGHTS[name] for name in flags.active())
    return {
        "volume": VOLUME_POINTS if total_volume > config.whale_threshold else 0,
        "frequency": FREQUENCY_POINTS if prior_transfers > FREQUENCY_MIN_TRANSFERS else 0,
        "flags": flag_points,
    }


def calculate_risk_score(
    total_volume: int,
    prior_transfers: int,
    flags: BehaviorFlags,
    config: EngineConfig,
) -> int:
    return sum(risk_components(total_volume, prior_transfers, flags, config).values())


def is_high_risk(risk_score: int, config: EngineConfig) -> bool:
    return risk_score >= config.risk_high_threshold


def loyalty_components(profile: AccountProfile, config: EngineConfig) -> dict[str, int]:
    """Per-component loyalty points from the (post-update) profile."""
    hold_duration = profile.last_activity - profile.first_activity
    if hold_duration >= config.min_hold_time_for_loyalty:
        duration = DURATION_MAX
    else:
        duration = hold_duration * DURATION_MAX // config.min_hold_time_for_loyalty

    if profile.average_hold_time > CONSISTENCY_FULL_HOLD:
        consistency = CONSISTENCY_MAX
    else:
        consistency = profile.average_hold_time * CONSISTENCY_MAX // CONSISTENCY_FULL_HOLD

    if ACTIVITY_MIN_TRANSFERS < profile.total_transfers < ACTIVITY_MAX_TRANSFERS:
        activity = ACTIVITY_HEALTHY
    else:
        activity = ACTIVITY_OTHER

    return {"duration": duration, "consistency": consistency, "activity": activity}


def calculate_loyalty_score(profile: AccountProfile, config: EngineConfig) -> int:
    return sum(loyalty_components(profile, config).values())
