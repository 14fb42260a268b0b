"""
API server package: HTTP interface over the analytics engine.

Exposes registration and transfer recording to the operator, and read-only
profile, flag, ledger, daily-activity and global-counter lookups.
"""

from behavior_analytics.api_server.server import create_app

__all__ = ["create_app"]
