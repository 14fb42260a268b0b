"""
Pytest tests for the SQLAlchemy store backend: schema, persistence, rollback,
and parity with the in-memory backend.

Uses a temporary SQLite file via conftest fixtures.
"""

from __future__ import annotations

import threading

import pytest

from behavior_analytics.core.exceptions import AlreadyExists, NotFound
from behavior_analytics.database import AccountProfile, get_database
from behavior_analytics.database.sql_backend import SQLAlchemyBackend, safe_url
from behavior_analytics.engine import BehaviorAnalyticsEngine

OPERATOR = "operator"
ALICE = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"
BOB = "SP3FBR2AGK5H9QBDH3EEN6DF8EK8JY7RX8QJ5SVTE"

# (account, recipient, amount, transfer_type, now)
SCRIPT = [
    (ALICE, BOB, 2_000_000, "transfer", 1),
    (ALICE, BOB, 150_000, "swap", 2),
    (BOB, ALICE, 10, "transfer", 20_000),
    (ALICE, "SP-CAROL", 5, "transfer", 300),
    (BOB, ALICE, 120_000, "transfer", 20_001),
]


def _run_script(engine: BehaviorAnalyticsEngine) -> list[int]:
    engine.register(OPERATOR, ALICE, now=0)
    engine.register(OPERATOR, BOB, now=0)
    return [
        engine.record_transfer(OPERATOR, account, recipient, amount, kind, now=now)
        for account, recipient, amount, kind, now in SCRIPT
    ]


def _snapshot(engine: BehaviorAnalyticsEngine, ids: list[int]) -> dict:
    return {
        "profiles": {a: engine.get_profile(a) for a in (ALICE, BOB)},
        "flags": {a: engine.get_flags(a) for a in (ALICE, BOB)},
        "transfers": [engine.get_transfer(a, tid) for (a, *_), tid in zip(SCRIPT, ids)],
        "daily": {
            (a, d): engine.get_daily_activity(a, d)
            for a in (ALICE, BOB)
            for d in (0, 2, 138)
        },
        "counters": engine.get_global_analytics(),
    }


def test_schema_creates_counters_row_once(sql_database):
    sql_database.ensure_schema()
    sql_database.ensure_schema()
    with sql_database.transaction() as tx:
        counters = tx.get_global_counters()
    assert counters.next_transfer_id == 1
    assert counters.total_accounts == 0


def test_sql_backend_matches_in_memory(engine, sql_engine):
    """Same operation script -> identical profiles, flags, ledger, rollups and counters."""
    mem_ids = _run_script(engine)
    sql_ids = _run_script(sql_engine)
    assert mem_ids == sql_ids == [1, 2, 3, 4, 5]
    assert _snapshot(sql_engine, sql_ids) == _snapshot(engine, mem_ids)


def test_amounts_beyond_64_bits_match_in_memory(engine, sql_engine):
    """18-decimal token amounts overflow BIGINT; both stores keep them exactly."""
    amounts = [10 * 10**18, 2**63 - 1, 2**64 + 7, 10**70]
    for e in (engine, sql_engine):
        e.register(OPERATOR, ALICE, now=0)
        for i, amount in enumerate(amounts, start=1):
            assert e.record_transfer(OPERATOR, ALICE, BOB, amount, "transfer", now=i) == i

    for e in (engine, sql_engine):
        assert e.get_profile(ALICE).total_volume == sum(amounts)
        assert e.get_transfer(ALICE, 3).amount == 2**64 + 7
        assert e.get_daily_activity(ALICE, 0).total_volume == sum(amounts)
    assert sql_engine.get_profile(ALICE) == engine.get_profile(ALICE)
    assert sql_engine.get_flags(ALICE) == engine.get_flags(ALICE)
    assert isinstance(sql_engine.get_profile(ALICE).total_volume, int)


def test_large_amount_survives_reopen(tmp_path):
    url = f"sqlite:///{tmp_path / 'wide.db'}"
    first = BehaviorAnalyticsEngine(get_database(url), operator=OPERATOR)
    first.register(OPERATOR, ALICE, now=0)
    first.record_transfer(OPERATOR, ALICE, BOB, 3 * 10**40, "transfer", now=1)
    first.db.backend.dispose()

    second = BehaviorAnalyticsEngine(get_database(url), operator=OPERATOR)
    assert second.get_profile(ALICE).total_volume == 3 * 10**40
    assert second.get_transfer(ALICE, 1).amount == 3 * 10**40
    second.db.backend.dispose()


def test_engine_log_url_masks_password():
    assert safe_url("postgresql://analytics:s3cret@db:5432/analytics") == "postgresql://analytics:***@db:5432/analytics"
    assert safe_url("sqlite:///tmp/analytics.db") == "sqlite:///tmp/analytics.db"


def test_state_persists_across_backends(tmp_path):
    url = f"sqlite:///{tmp_path / 'persist.db'}"
    first = BehaviorAnalyticsEngine(get_database(url), operator=OPERATOR)
    first.register(OPERATOR, ALICE, now=0)
    tid = first.record_transfer(OPERATOR, ALICE, BOB, 42, "transfer", now=7)
    first.db.backend.dispose()

    second = BehaviorAnalyticsEngine(get_database(url), operator=OPERATOR)
    assert second.get_profile(ALICE).total_volume == 42
    assert second.get_transfer(ALICE, tid).amount == 42
    assert second.get_global_analytics().next_transfer_id == tid + 1
    second.db.backend.dispose()


def test_duplicate_registration_rolls_back(sql_engine):
    sql_engine.register(OPERATOR, ALICE, now=0)
    with pytest.raises(AlreadyExists):
        sql_engine.register(OPERATOR, ALICE, now=3)
    assert sql_engine.get_global_analytics().total_accounts == 1
    assert sql_engine.get_profile(ALICE).first_activity == 0


def test_not_found_writes_nothing(sql_engine):
    with pytest.raises(NotFound):
        sql_engine.record_transfer(OPERATOR, "Y", BOB, 5, "transfer", now=1)
    assert sql_engine.get_daily_activity("Y", 0) is None
    assert sql_engine.get_global_analytics().next_transfer_id == 1


def test_session_error_rolls_back(sql_database):
    """Writes inside a failing session are discarded."""
    with pytest.raises(RuntimeError):
        with sql_database.transaction() as tx:
            tx.create_profile(AccountProfile(account=ALICE))
            tx.increment_counter("total_accounts")
            tx.allocate_transfer_id()
            raise RuntimeError("abort")
    with sql_database.transaction() as tx:
        assert tx.get_profile(ALICE) is None
        assert tx.get_global_counters().total_accounts == 0
        assert tx.get_global_counters().next_transfer_id == 1


def test_unknown_counter_rejected(sql_database):
    with pytest.raises(ValueError):
        with sql_database.transaction() as tx:
            tx.increment_counter("next_transfer_id")


def test_in_memory_sqlite_url():
    db = get_database("sqlite://")
    assert isinstance(db.backend, SQLAlchemyBackend)
    engine = BehaviorAnalyticsEngine(db, operator=OPERATOR)
    engine.register(OPERATOR, ALICE, now=0)
    assert engine.record_transfer(OPERATOR, ALICE, BOB, 1, "transfer", now=1) == 1
    db.backend.dispose()


def test_concurrent_transfers_on_sqlite(sql_engine):
    sql_engine.register(OPERATOR, ALICE, now=0)
    sql_engine.register(OPERATOR, BOB, now=0)
    ids: list[int] = []
    lock = threading.Lock()

    def worker(account: str) -> None:
        for _ in range(10):
            tid = sql_engine.record_transfer(OPERATOR, account, "SP-CAROL", 2, "transfer", now=5)
            with lock:
                ids.append(tid)

    threads = [threading.Thread(target=worker, args=(a,)) for a in (ALICE, BOB, ALICE, BOB)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(ids) == list(range(1, 41))
    assert sql_engine.get_profile(ALICE).total_transfers == 20
    assert sql_engine.get_profile(BOB).total_volume == 40
