# Scoring and flagging engine: flag classifier, composite scorer, transfer processor.
# Deterministic thresholds and weights; no ML.

from behavior_analytics.engine.flags import classify_flags, update_flags
from behavior_analytics.engine.processor import BehaviorAnalyticsEngine, operator_only
from behavior_analytics.engine.scoring import (
    calculate_loyalty_score,
    calculate_risk_score,
)

__all__ = [
    "BehaviorAnalyticsEngine",
    "calculate_loyalty_score",
    "calculate_risk_score",
    "classify_flags",
    "operator_only",
    "update_flags",
]
