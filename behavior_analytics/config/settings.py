"""
Engine tunables and service settings.

EngineConfig holds the scoring/flagging thresholds; Settings bundles it with
the store URL, operator principal and block time. Both are resolved from the
environment (and .env) by get_settings().
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field, fields

from behavior_analytics.config.env import (
    DEFAULT_BLOCK_TIME_SEC,
    DEFAULT_OPERATOR,
    ENV_PREFIX,
    env_int,
    get_block_time_sec,
    get_database_url,
    get_operator,
    load_analytics_env,
)
from behavior_analytics.core.exceptions import ConfigError

BLOCKS_PER_DAY = 144
DEFAULT_RISK_HIGH_THRESHOLD = 75
DEFAULT_MIN_HOLD_TIME_FOR_LOYALTY = 30 * BLOCKS_PER_DAY
DEFAULT_MAX_TRANSFERS_PER_DAY = 50
DEFAULT_WHALE_THRESHOLD = 1_000_000
DEFAULT_DORMANCY_PERIOD = 100 * BLOCKS_PER_DAY

# Fields used as divisors must be strictly positive
_POSITIVE_FIELDS = ("blocks_per_day", "min_hold_time_for_loyalty")


@dataclass(frozen=True)
class EngineConfig:
    """
    Thresholds for the flag classifier and composite scorer.

    Time-valued fields are in blocks. The weight_* values are carried for
    compatibility with stored configurations; the scorer uses its own literal
    component weights.
    """

    risk_high_threshold: int = DEFAULT_RISK_HIGH_THRESHOLD
    weight_frequency: int = 30
    weight_volume: int = 25
    weight_duration: int = 25
    weight_consistency: int = 20
    min_hold_time_for_loyalty: int = DEFAULT_MIN_HOLD_TIME_FOR_LOYALTY
    max_transfers_per_day: int = DEFAULT_MAX_TRANSFERS_PER_DAY
    whale_threshold: int = DEFAULT_WHALE_THRESHOLD
    dormancy_period: int = DEFAULT_DORMANCY_PERIOD
    blocks_per_day: int = BLOCKS_PER_DAY

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"{f.name} must be an int, got {value!r}")
            if value < 0:
                raise ConfigError(f"{f.name} must be non-negative, got {value}")
        for name in _POSITIVE_FIELDS:
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")

    @property
    def large_volume_threshold(self) -> int:
        return self.whale_threshold // 10

    def to_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build from ANALYTICS_<FIELD> env vars, falling back to defaults."""
        load_analytics_env()
        overrides = {
            f.name: env_int(ENV_PREFIX + f.name.upper(), f.default)
            for f in fields(cls)
        }
        return cls(**overrides)


@dataclass(frozen=True)
class Settings:
    """Service settings: store location, operator principal, clock, engine tunables."""

    database_url: str | None = None
    operator: str = DEFAULT_OPERATOR
    block_time_sec: int = DEFAULT_BLOCK_TIME_SEC
    engine: EngineConfig = field(default_factory=EngineConfig)


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the current application settings (cached).

    Call get_settings.cache_clear() after changing the environment in tests.
    """
    return Settings(
        database_url=get_database_url(),
        operator=get_operator(),
        block_time_sec=get_block_time_sec(),
        engine=EngineConfig.from_env(),
    )
