"""
Core utilities: domain exceptions shared by the engine, stores and API server.
"""

from behavior_analytics.core.exceptions import (
    AlreadyExists,
    AnalyticsError,
    ConfigError,
    InvalidAmount,
    NotFound,
    Unauthorized,
)

__all__ = [
    "AlreadyExists",
    "AnalyticsError",
    "ConfigError",
    "InvalidAmount",
    "NotFound",
    "Unauthorized",
]
