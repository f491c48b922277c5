"""
Concurrent gate calls against PostgreSQL.

Expected Behavior:
- N concurrent creates yield N inspections and exactly N ledger entries
  with ids 1..N and an intact chain
- Concurrent updates completing one inspection: row locks serialize the
  writers, exactly one succeeds and only the winner is audited
- Database triggers block raw UPDATE/DELETE of ledger rows; with the
  triggers removed, a raw edit is caught by chain verification
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from compliance_kernel.db.engine import get_session_factory
from compliance_kernel.db.triggers import (
    ALL_TRIGGER_NAMES,
    get_installed_triggers,
    install_immutability_triggers,
    uninstall_immutability_triggers,
)
from compliance_kernel.domain.access import Action, ResourceKind, Role, User
from compliance_kernel.exceptions import InvalidTransitionError, OptimisticLockError
from compliance_kernel.services.access_gate import AccessGate

pytestmark = pytest.mark.postgres

SI = ResourceKind.SITE_INSPECTION
THREADS = 10


@pytest.fixture
def pg_gate(pg_engine):
    return AccessGate(get_session_factory())


def _users(count: int) -> list[User]:
    return [User(f"u-{i}", f"Worker {i}", Role.PROJECT_MANAGER) for i in range(count)]


def test_concurrent_creates_get_dense_ledger_ids(pg_gate, inspection_payload):
    barrier = Barrier(THREADS)

    def create(user):
        barrier.wait()
        return pg_gate.execute(user, Action.CREATE, SI, inspection_payload)

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        records = list(pool.map(create, _users(THREADS)))

    assert len({r.id for r in records}) == THREADS

    reviewer = _users(1)[0]
    entries = pg_gate.execute(reviewer, Action.READ, ResourceKind.AUDIT_LOG)
    assert [e.id for e in entries] == list(range(1, THREADS + 1))
    assert pg_gate.verify_ledger(reviewer).valid


def test_concurrent_updates_one_inspection(pg_gate, inspection_payload):
    users = _users(THREADS)
    created = pg_gate.execute(users[0], Action.CREATE, SI, inspection_payload)
    barrier = Barrier(THREADS)

    def complete(user):
        barrier.wait()
        try:
            pg_gate.execute(user, Action.UPDATE, SI, {"id": created.id, "status": "Completed"})
            return "ok"
        except (InvalidTransitionError, OptimisticLockError) as exc:
            return type(exc).__name__

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        outcomes = list(pool.map(complete, users))

    # Row locks serialize the writers: the first completes, the rest see a terminal status.
    assert outcomes.count("ok") == 1

    trail = pg_gate.execute(
        users[0],
        Action.READ,
        ResourceKind.AUDIT_LOG,
        {"resource_kind": SI.value, "resource_id": created.id},
    )
    assert [e.action for e in trail] == ["Create", "Update"]
    assert pg_gate.verify_ledger(users[0]).valid


def test_triggers_installed(pg_engine):
    assert set(ALL_TRIGGER_NAMES) <= set(get_installed_triggers(pg_engine))


@pytest.mark.parametrize(
    "statement",
    [
        "UPDATE audit_entries SET actor_name = 'x'",
        "DELETE FROM audit_entries",
        "DELETE FROM site_inspections",
    ],
)
def test_triggers_block_raw_sql(pg_gate, pg_engine, inspection_payload, statement):
    pg_gate.execute(_users(1)[0], Action.CREATE, SI, inspection_payload)

    with pytest.raises(DBAPIError):
        with pg_engine.begin() as conn:
            conn.execute(text(statement))


def test_tamper_with_triggers_removed_is_detected(pg_gate, pg_engine, inspection_payload):
    reviewer = _users(1)[0]
    for _ in range(3):
        pg_gate.execute(reviewer, Action.CREATE, SI, inspection_payload)

    uninstall_immutability_triggers(pg_engine)
    try:
        with pg_engine.begin() as conn:
            conn.execute(text("UPDATE audit_entries SET actor_name = 'x' WHERE seq = 2"))
    finally:
        install_immutability_triggers(pg_engine)

    result = pg_gate.verify_ledger(reviewer)
    assert result.valid is False
    assert result.broken_at == "2"
