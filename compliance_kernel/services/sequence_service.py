"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for audit ledger ids and
    site inspection insertion order.  Uses a dedicated counter table with
    row-level locking (``SELECT ... FOR UPDATE``) to guarantee uniqueness
    and ordering under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by AuditLedger (ledger ids) and SiteInspectionStore
    (insertion order).

Invariants enforced:
    - The locked counter row is the sole source of truth for the next
      value; max(seq)+1 is never used.
    - The increment is only visible after the caller's transaction
      commits.  Rollback returns the value, so a failed append leaves
      no gap.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from compliance_kernel.db.base import Base
from compliance_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One row per named sequence, holding its current value."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session_scope() as session:
            seq = SequenceService(session).next_value(SequenceService.AUDIT_ENTRY)
    """

    AUDIT_ENTRY = "audit_entry"
    SITE_INSPECTION = "site_inspection"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment, return.

        Postconditions:
            - Returns an integer > 0 strictly greater than any previously
              committed value for this sequence name.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # Another session may create the same counter concurrently
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def initialize_sequences(self) -> None:
        """
        Seed the ledger and inspection counters at zero.

        Called from ``create_tables``; idempotent, existing counters keep
        their value.
        """
        for name in (self.AUDIT_ENTRY, self.SITE_INSPECTION):
            existing = self._session.execute(
                select(SequenceCounter).where(SequenceCounter.name == name)
            ).scalar_one_or_none()
            if existing is None:
                self._session.add(SequenceCounter(name=name, current_value=0))
                logger.debug("sequence_initialized", extra={"sequence_name": name})

        self._session.flush()
