"""
Structured logging for the behavior analytics engine (structlog).
"""

from behavior_analytics.analytics_logging.logger import (
    bind_account,
    configure_logging,
    get_logger,
    short_account,
)

__all__ = ["bind_account", "configure_logging", "get_logger", "short_account"]
