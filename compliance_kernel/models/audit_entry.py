"""
Module: compliance_kernel.models.audit_entry
Responsibility: ORM persistence for the append-only, hash-chained audit ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit rows are append-only; no UPDATE or DELETE (ORM listener + DB trigger).
    - Hash chain integrity: hash = H(resource_kind | resource_id | action |
      payload_hash | prev_hash).  Validated by AuditLedger.verify_chain.
    - seq is strictly increasing, allocated by SequenceService, and is the
      entry id exposed to callers.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a hash mismatch.
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base, UTCDateTime


class AuditEntry(Base):
    """
    One ledger entry.

    Guarantees:
        - seq is globally unique and strictly increasing.
        - The acting user is denormalised into actor_* columns: the entry
          must stay readable after the user leaves the identity provider.
        - prev_hash is None only for the genesis entry.
    """

    __tablename__ = "audit_entries"

    __table_args__ = (
        Index("idx_audit_entries_resource", "resource_kind", "resource_id"),
        Index("idx_audit_entries_seq", "seq"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    actor_role: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Action value ("Create", "Update") or a manual label
    action: Mapped[str] = mapped_column(String(64), nullable=False)

    resource_kind: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEntry #{self.seq} {self.action} on {self.resource_kind}:{self.resource_id}>"
