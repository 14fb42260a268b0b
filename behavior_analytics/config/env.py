"""
Environment variable loading for the analytics engine.

- ANALYTICS_DB_URL / DATABASE_URL: SQLAlchemy URL for the persistent store (unset: in-memory)
- ANALYTICS_OPERATOR: trusted operator principal allowed to mutate state
- BLOCK_TIME_SEC: seconds per block for the default clock (default 600, i.e. 144 blocks/day)
- ANALYTICS_<TUNABLE>: overrides for EngineConfig fields (e.g. ANALYTICS_WHALE_THRESHOLD)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from behavior_analytics.core.exceptions import ConfigError

# config is behavior_analytics/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

ENV_PREFIX = "ANALYTICS_"
DEFAULT_OPERATOR = "operator"
DEFAULT_BLOCK_TIME_SEC = 600


def load_analytics_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides set vars."""
    load_dotenv(_ENV_PATH, override=False)


def env_int(name: str, default: int) -> int:
    """Return integer env var `name`, or default when unset/blank. Raises ConfigError if not an int."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def get_database_url() -> str | None:
    """
    Resolve the store URL.
    Order: ANALYTICS_DB_URL > DATABASE_URL > None (in-memory store).
    """
    load_analytics_env()
    url = (os.getenv("ANALYTICS_DB_URL") or os.getenv("DATABASE_URL") or "").strip()
    return url or None


def get_operator() -> str:
    """Return the trusted operator principal."""
    load_analytics_env()
    return (os.getenv("ANALYTICS_OPERATOR") or "").strip() or DEFAULT_OPERATOR


def get_block_time_sec() -> int:
    load_analytics_env()
    value = env_int("BLOCK_TIME_SEC", DEFAULT_BLOCK_TIME_SEC)
    if value <= 0:
        raise ConfigError(f"BLOCK_TIME_SEC must be positive, got {value}")
    return value
