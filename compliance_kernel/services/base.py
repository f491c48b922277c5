"""
BaseService -- abstract base for the session-bound kernel services.

Responsibility:
    Common constructor and session-handling contract.  Concrete services
    receive a SQLAlchemy ``Session`` and persist via ``session.flush()`` --
    never ``session.commit()``.

Architecture position:
    Kernel > Services.  Extended by AuditLedger and SiteInspectionStore.

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      roll back themselves.  The access gate owns transaction boundaries,
      which is what lets it commit a mutation before appending its audit
      entry in a second transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for session-bound kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
