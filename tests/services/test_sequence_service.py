"""
Sequence counters and database bootstrap.

Expected Behavior:
- create_tables() on a fresh engine creates the counter table and seeds
  the ledger and inspection counters at zero
- Running create_tables() again keeps existing counter values
- next_value() is strictly increasing per name and starts at 1
- A rolled-back allocation leaves no gap
"""

import pytest
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select

from compliance_kernel.db.engine import (
    create_tables,
    get_engine,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from compliance_kernel.services.sequence_service import SequenceCounter, SequenceService


def _counters(session) -> dict[str, int]:
    rows = session.execute(select(SequenceCounter)).scalars()
    return {row.name: row.current_value for row in rows}


@pytest.fixture
def fresh_engine(tmp_path):
    """An initialized engine with no tables yet."""
    eng = init_engine_from_url(f"sqlite:///{tmp_path / 'bootstrap.db'}")
    yield eng
    reset_engine()


class TestBootstrap:
    def test_create_tables_on_fresh_engine(self, fresh_engine):
        create_tables()

        tables = set(sa_inspect(get_engine()).get_table_names())
        assert {"sequence_counters", "audit_entries", "site_inspections"} <= tables

        with session_scope() as session:
            assert _counters(session) == {
                SequenceService.AUDIT_ENTRY: 0,
                SequenceService.SITE_INSPECTION: 0,
            }

    def test_create_tables_twice_keeps_counters(self, fresh_engine):
        create_tables()
        with session_scope() as session:
            SequenceService(session).next_value(SequenceService.AUDIT_ENTRY)

        create_tables()

        with session_scope() as session:
            assert _counters(session)[SequenceService.AUDIT_ENTRY] == 1


class TestNextValue:
    def test_starts_at_one_and_increments(self, session):
        service = SequenceService(session)
        values = [service.next_value(SequenceService.SITE_INSPECTION) for _ in range(3)]
        assert values == [1, 2, 3]

    def test_names_are_independent(self, session):
        service = SequenceService(session)
        service.next_value(SequenceService.SITE_INSPECTION)
        assert service.next_value(SequenceService.AUDIT_ENTRY) == 1

    def test_rollback_returns_value(self, session_factory):
        session = session_factory()
        try:
            SequenceService(session).next_value(SequenceService.AUDIT_ENTRY)
            session.rollback()
            assert SequenceService(session).next_value(SequenceService.AUDIT_ENTRY) == 1
        finally:
            session.rollback()
            session.close()
