"""
AuditLedger -- append-only, hash-chained record of every state change.

Responsibility:
    Appends immutable audit entries, lists them in ledger order, traces the
    history of one resource, and validates the hash chain for tamper
    detection.

Architecture position:
    Kernel > Services -- imperative shell, called only by AccessGate.

Invariants enforced:
    - Ledger ids come from SequenceService (locked counter row), never
      max(seq)+1.  Because the counter row is locked for the whole append
      transaction, appends are serialized: ids are strictly increasing,
      never duplicated, and each entry's prev_hash is its predecessor's hash.
    - hash = H(resource_kind | resource_id | action | payload_hash | prev_hash),
      where payload_hash covers seq, timestamp, actor and details.
    - Append-only: no update or delete operation exists here, and the
      AuditEntry model is protected by ORM listeners and DB triggers.

Failure modes:
    - AuditChainBrokenError from verify_chain() when a stored hash or link
      does not match its recomputation.
    - Any storage error propagates; the caller's transaction rolls back and
      the allocated id returns to the counter.
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import func, select

from compliance_kernel.domain.dtos import AuditEntryDraft, AuditEntryRecord
from compliance_kernel.exceptions import AuditChainBrokenError
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.audit_entry import AuditEntry
from compliance_kernel.services.base import BaseService
from compliance_kernel.services.sequence_service import SequenceService
from compliance_kernel.utils.hashing import (
    canonicalize_json,
    hash_audit_entry,
    hash_payload,
)

logger = get_logger("services.audit_ledger")


def _entry_payload(entry: AuditEntry) -> dict[str, Any]:
    return {
        "seq": entry.seq,
        "occurred_at": entry.occurred_at,
        "actor": {
            "id": entry.actor_id,
            "display_name": entry.actor_name,
            "role": entry.actor_role,
        },
        "details": entry.details or {},
    }


def _expected_hashes(entry: AuditEntry) -> tuple[str, str]:
    payload_hash = hash_payload(_entry_payload(entry))
    return payload_hash, hash_audit_entry(
        resource_kind=entry.resource_kind,
        resource_id=entry.resource_id,
        action=entry.action,
        payload_hash=payload_hash,
        prev_hash=entry.prev_hash,
    )


class AuditLedger(BaseService):
    """
    Append-only ledger.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT decide what is auditable; the gate does.
    """

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._sequence_service = SequenceService(session)

    def _last_hash(self) -> str | None:
        last = self.session.execute(
            select(AuditEntry).order_by(AuditEntry.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last.hash if last else None

    def append(self, draft: AuditEntryDraft) -> AuditEntryRecord:
        """
        Record one action.

        Postconditions:
            - A new AuditEntry is flushed with the next ledger id and a
              valid chain link.
            - The timestamp comes from the injected clock.
        """
        # Allocating first takes the counter lock, so the tail read below
        # cannot race another append.
        seq = self._sequence_service.next_value(SequenceService.AUDIT_ENTRY)
        prev_hash = self._last_hash()

        actor = draft.acting_user
        # Normalise details to plain JSON so the stored value hashes the same
        # on re-read as it did on write.
        details = json.loads(canonicalize_json(dict(draft.details)))

        entry = AuditEntry(
            seq=seq,
            occurred_at=self.clock.now(),
            actor_id=actor.id,
            actor_name=actor.display_name,
            actor_role=actor.role.value if actor.role is not None else None,
            action=str(draft.action),
            resource_kind=draft.resource_kind.value,
            resource_id=draft.resource_id,
            details=details,
            prev_hash=prev_hash,
        )
        entry.payload_hash, entry.hash = _expected_hashes(entry)

        self.session.add(entry)
        self.session.flush()

        logger.info(
            "audit_entry_appended",
            extra={
                "seq": seq,
                "action": entry.action,
                "resource_kind": entry.resource_kind,
                "resource_id": entry.resource_id,
            },
        )
        return AuditEntryRecord.from_model(entry)

    def list(
        self,
        after_id: int | None = None,
        limit: int | None = None,
    ) -> list[AuditEntryRecord]:
        """
        Entries oldest first.

        ``after_id`` makes the listing restartable: pass the last id seen
        to continue from there.
        """
        stmt = select(AuditEntry).order_by(AuditEntry.seq)
        if after_id is not None:
            stmt = stmt.where(AuditEntry.seq > after_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [
            AuditEntryRecord.from_model(entry)
            for entry in self.session.execute(stmt).scalars()
        ]

    def trace(self, resource_kind: str, resource_id: str) -> list[AuditEntryRecord]:
        """Every entry about one resource, oldest first."""
        kind = getattr(resource_kind, "value", resource_kind)
        entries = self.session.execute(
            select(AuditEntry)
            .where(
                AuditEntry.resource_kind == kind,
                AuditEntry.resource_id == str(resource_id),
            )
            .order_by(AuditEntry.seq)
        ).scalars()
        return [AuditEntryRecord.from_model(entry) for entry in entries]

    def count(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(AuditEntry)
        ).scalar_one()

    def verify_chain(self) -> bool:
        """
        Validate the entire chain.

        Returns True only if every stored hash matches its recomputation and
        every prev_hash matches the predecessor's hash.

        Raises:
            AuditChainBrokenError: at the first entry that fails.
        """
        entries = self.session.execute(
            select(AuditEntry).order_by(AuditEntry.seq)
        ).scalars().all()

        previous: AuditEntry | None = None
        for entry in entries:
            expected_prev = previous.hash if previous is not None else None
            if entry.prev_hash != expected_prev:
                self._chain_broken(entry, expected_prev or "None", entry.prev_hash or "None")

            payload_hash, expected_hash = _expected_hashes(entry)
            if entry.payload_hash != payload_hash:
                self._chain_broken(entry, payload_hash, entry.payload_hash)
            if entry.hash != expected_hash:
                self._chain_broken(entry, expected_hash, entry.hash)
            previous = entry

        logger.info("audit_chain_valid", extra={"entry_count": len(entries)})
        return True

    def _chain_broken(self, entry: AuditEntry, expected: str, actual: str) -> None:
        logger.critical(
            "audit_chain_broken",
            extra={"seq": entry.seq, "expected": expected, "actual": actual},
        )
        raise AuditChainBrokenError(str(entry.seq), expected, actual)
