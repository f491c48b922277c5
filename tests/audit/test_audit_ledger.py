"""
Audit ledger tests.

Verifies:
- Append assigns strictly increasing ids and links each entry to its predecessor
- Timestamps come from the injected clock
- list() pages oldest first; trace() filters by resource
- verify_chain() detects edits to any stored field
- Entries cannot be updated or deleted through the ORM
"""

from contextlib import contextmanager
from datetime import timedelta

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import select, text

from compliance_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from compliance_kernel.domain.access import ResourceKind
from compliance_kernel.domain.dtos import AuditEntryDraft
from compliance_kernel.exceptions import AuditChainBrokenError, ImmutabilityViolationError
from compliance_kernel.models.audit_entry import AuditEntry
from compliance_kernel.services.audit_ledger import AuditLedger
from compliance_kernel.utils.hashing import hash_audit_entry


@contextmanager
def orm_guards_disabled():
    """Temporarily remove the ORM immutability listeners (tamper simulation only)."""
    unregister_immutability_listeners()
    try:
        yield
    finally:
        register_immutability_listeners()


def _draft(user, action="Create", resource_id="insp-1", **details):
    return AuditEntryDraft(
        acting_user=user,
        action=action,
        resource_kind=ResourceKind.SITE_INSPECTION,
        resource_id=resource_id,
        details=details,
    )


@pytest.fixture
def ledger(session, deterministic_clock):
    return AuditLedger(session, deterministic_clock)


class TestAppend:
    def test_first_entry_is_genesis(self, ledger, director):
        record = ledger.append(_draft(director, status="Scheduled"))

        assert record.id == 1
        assert record.prev_hash is None
        assert record.actor_id == director.id
        assert record.actor_name == director.display_name
        assert record.actor_role == "Director"
        assert record.details == {"status": "Scheduled"}
        assert len(record.hash) == 64

    def test_ids_increase_and_link(self, ledger, director, technician):
        first = ledger.append(_draft(director))
        second = ledger.append(_draft(technician, action="Update"))
        third = ledger.append(_draft(director, resource_id="insp-2"))

        assert [first.id, second.id, third.id] == [1, 2, 3]
        assert second.prev_hash == first.hash
        assert third.prev_hash == second.hash

    def test_timestamp_from_clock(self, ledger, director, deterministic_clock):
        start = deterministic_clock.now()
        first = ledger.append(_draft(director))
        deterministic_clock.advance(90)
        second = ledger.append(_draft(director))

        assert first.timestamp == start
        assert second.timestamp == start + timedelta(seconds=90)

    def test_hash_covers_kind_id_action_and_link(self, ledger, director):
        record = ledger.append(_draft(director, action="Update", resource_id="insp-9"))
        model = ledger.session.execute(
            select(AuditEntry).where(AuditEntry.seq == record.id)
        ).scalar_one()

        assert record.hash == hash_audit_entry(
            "SiteInspection", "insp-9", "Update", model.payload_hash, None
        )

    def test_draft_requires_action(self, director):
        with pytest.raises(ValueError):
            _draft(director, action="  ")

    def test_details_are_copied(self, ledger, director):
        details = {"findings": ["a"]}
        draft = AuditEntryDraft(director, "Create", ResourceKind.SITE_INSPECTION, "x", details)
        record = ledger.append(draft)
        details["findings"].append("b")

        assert record.details == {"findings": ["a"]}


class TestReads:
    def test_list_oldest_first_and_pages(self, ledger, director):
        for i in range(5):
            ledger.append(_draft(director, resource_id=f"insp-{i}"))

        assert [e.id for e in ledger.list()] == [1, 2, 3, 4, 5]
        assert [e.id for e in ledger.list(after_id=2)] == [3, 4, 5]
        assert [e.id for e in ledger.list(after_id=2, limit=2)] == [3, 4]
        assert ledger.list(after_id=5) == []
        assert ledger.count() == 5

    def test_trace(self, ledger, director):
        ledger.append(_draft(director, resource_id="a"))
        ledger.append(_draft(director, resource_id="b"))
        ledger.append(_draft(director, action="Update", resource_id="a"))

        history = ledger.trace(ResourceKind.SITE_INSPECTION, "a")
        assert [(e.id, e.action) for e in history] == [(1, "Create"), (3, "Update")]
        assert ledger.trace(ResourceKind.AUDIT_LOG, "a") == []


class TestChainVerification:
    def test_empty_chain_is_valid(self, ledger):
        assert ledger.verify_chain() is True

    def test_intact_chain(self, ledger, director):
        for i in range(4):
            ledger.append(_draft(director, resource_id=f"insp-{i}"))
        ledger.session.commit()

        assert ledger.verify_chain() is True

    @pytest.mark.parametrize(
        "column,value",
        [
            ("details", '{"status": "Completed"}'),
            ("actor_name", "'Somebody Else'"),
            ("action", "'Update'"),
            ("resource_id", "'insp-x'"),
        ],
    )
    def test_raw_sql_tamper_detected(
        self, ledger, director, session_factory, raw_engine, captured_logs, column, value
    ):
        for i in range(3):
            ledger.append(_draft(director, resource_id=f"insp-{i}", status="Scheduled"))
        ledger.session.commit()

        if column == "details":
            value = f"'{value}'"
        with raw_engine.begin() as conn:
            conn.execute(text(f"UPDATE audit_entries SET {column} = {value} WHERE seq = 2"))

        with session_factory() as fresh:
            with pytest.raises(AuditChainBrokenError) as exc_info:
                AuditLedger(fresh).verify_chain()

        assert exc_info.value.audit_entry_id == "2"
        assert any(
            r["message"] == "audit_chain_broken" and r["level"] == "CRITICAL"
            for r in captured_logs()
        )

    def test_deleted_entry_breaks_link(self, ledger, director, session_factory, raw_engine):
        for i in range(3):
            ledger.append(_draft(director, resource_id=f"insp-{i}"))
        ledger.session.commit()

        with raw_engine.begin() as conn:
            conn.execute(text("DELETE FROM audit_entries WHERE seq = 2"))

        with session_factory() as fresh:
            with pytest.raises(AuditChainBrokenError) as exc_info:
                AuditLedger(fresh).verify_chain()
        assert exc_info.value.audit_entry_id == "3"

    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(
        details=st.dictionaries(
            st.text(min_size=1, max_size=8),
            st.one_of(st.integers(), st.text(max_size=12), st.booleans(), st.none()),
            max_size=4,
        )
    )
    def test_arbitrary_details_verify(self, ledger, director, details):
        ledger.append(
            AuditEntryDraft(director, "Create", ResourceKind.SITE_INSPECTION, "p", details)
        )
        ledger.session.flush()
        ledger.session.expire_all()

        assert ledger.verify_chain() is True


class TestImmutability:
    def test_orm_update_blocked(self, ledger, director):
        record = ledger.append(_draft(director))
        ledger.session.commit()

        entry = ledger.session.execute(
            select(AuditEntry).where(AuditEntry.seq == record.id)
        ).scalar_one()
        entry.action = "Update"
        with pytest.raises(ImmutabilityViolationError):
            ledger.session.flush()

    def test_orm_delete_blocked(self, ledger, director):
        record = ledger.append(_draft(director))
        ledger.session.commit()

        entry = ledger.session.execute(
            select(AuditEntry).where(AuditEntry.seq == record.id)
        ).scalar_one()
        ledger.session.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            ledger.session.flush()

    def test_tamper_through_orm_needs_guards_disabled(self, ledger, director, session_factory):
        ledger.append(_draft(director))
        ledger.append(_draft(director))
        ledger.session.commit()

        with orm_guards_disabled():
            entry = ledger.session.execute(
                select(AuditEntry).where(AuditEntry.seq == 1)
            ).scalar_one()
            entry.actor_name = "Rewritten"
            ledger.session.commit()

        with session_factory() as fresh:
            with pytest.raises(AuditChainBrokenError):
                AuditLedger(fresh).verify_chain()
