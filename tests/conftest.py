"""
Pytest fixtures for behavior analytics tests.

In-memory engine by default; SQLite-backed engine via a temporary file for
store parity tests. Operations pass explicit block heights (now=...) so tests
never depend on wall-clock time.
"""

from __future__ import annotations

import pytest

OPERATOR = "operator"


@pytest.fixture
def engine():
    """Engine over a fresh in-memory store; clock pinned at block 0."""
    from behavior_analytics.engine import BehaviorAnalyticsEngine

    return BehaviorAnalyticsEngine(operator=OPERATOR, clock=lambda: 0)


@pytest.fixture
def sql_database(tmp_path):
    """Database over a temporary SQLite file; connections disposed after the test."""
    from behavior_analytics.database import get_database

    db = get_database(f"sqlite:///{tmp_path / 'analytics.db'}")
    yield db
    db.backend.dispose()


@pytest.fixture
def sql_engine(sql_database):
    """Engine over the temporary SQLite store."""
    from behavior_analytics.engine import BehaviorAnalyticsEngine

    return BehaviorAnalyticsEngine(sql_database, operator=OPERATOR, clock=lambda: 0)


@pytest.fixture
def client(engine):
    """FastAPI TestClient around the in-memory engine."""
    from fastapi.testclient import TestClient

    from behavior_analytics.api_server import create_app

    return TestClient(create_app(engine))


@pytest.fixture
def clean_settings(monkeypatch):
    """Clear analytics env vars and the settings cache before and after the test."""
    from behavior_analytics.config import get_settings

    for name in ("ANALYTICS_DB_URL", "DATABASE_URL", "ANALYTICS_OPERATOR", "BLOCK_TIME_SEC"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()
