"""
Pytest fixtures for the compliance kernel test suite.

Provides:
- A scratch SQLite database per test (tables, sequences, ORM guards)
- An AccessGate wired with a deterministic clock
- One user per role, plus an unauthenticated caller
- Structured log capture

Environment Variables:
- DATABASE_URL: when it names a PostgreSQL database, tests marked
  ``postgres`` run against it; otherwise they are skipped.
"""

import json
import logging
import os
from io import StringIO

import pytest

from compliance_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from compliance_kernel.db.immutability import register_immutability_listeners
from compliance_kernel.domain.access import ANONYMOUS, Role, User
from compliance_kernel.domain.clock import DeterministicClock
from compliance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from compliance_kernel.services.access_gate import AccessGate


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL (DATABASE_URL)"
    )


def get_postgres_url() -> str | None:
    url = os.environ.get("DATABASE_URL", "")
    return url if url.startswith("postgresql") else None


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture compliance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, gate, director):
            gate.execute(director, Action.CREATE, ...)
            logs = captured_logs()
            assert any(r["message"] == "audit_entry_appended" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("compliance_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """A fresh file-backed SQLite database for one test."""
    eng = init_engine_from_url(f"sqlite:///{tmp_path / 'compliance.db'}")
    create_tables()
    register_immutability_listeners()
    yield eng
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A session for direct service tests; the test decides when to commit."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def pg_engine():
    """The PostgreSQL database named by DATABASE_URL, with triggers installed."""
    url = get_postgres_url()
    if url is None:
        pytest.skip("DATABASE_URL does not point at PostgreSQL")
    eng = init_engine_from_url(url, pool_size=10, max_overflow=10, pool_timeout=10)
    drop_tables()
    create_tables(install_triggers=True)
    register_immutability_listeners()
    yield eng
    drop_tables()
    reset_engine()


# =============================================================================
# Kernel fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def gate(session_factory, deterministic_clock):
    return AccessGate(session_factory, clock=deterministic_clock)


@pytest.fixture
def director():
    return User(id="u-director", display_name="Dana Director", role=Role.DIRECTOR)


@pytest.fixture
def project_manager():
    return User(id="u-pm", display_name="Pat Manager", role=Role.PROJECT_MANAGER)


@pytest.fixture
def client_user():
    return User(id="u-client", display_name="Chris Client", role=Role.CLIENT)


@pytest.fixture
def technician():
    return User(id="u-tech", display_name="Terry Technician", role=Role.TECHNICIAN)


@pytest.fixture
def anonymous():
    return ANONYMOUS


@pytest.fixture
def inspection_payload():
    """A valid create body (snake_case keys)."""
    return {
        "site_address": "12 Harbor Rd, Portland ME",
        "inspection_type": "Phase I Environmental",
        "inspector_id": "insp-042",
        "findings": ["Drum storage near drain", {"area": "North lot", "severity": "low"}],
    }


@pytest.fixture
def raw_engine(db_engine):
    """The live engine, for tests that bypass the ORM (tampering, raw SQL)."""
    return get_engine()
