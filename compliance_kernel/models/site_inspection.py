"""
Module: compliance_kernel.models.site_inspection
Responsibility: ORM persistence for site inspections.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - id, created_at, created_by_id and insertion_seq never change after
      INSERT (ORM listener + DB trigger).
    - Rows are never deleted.
    - version is SQLAlchemy's version_id_col: every UPDATE is a
      check-and-set on (id, version), so a concurrent writer that read a
      stale version gets StaleDataError instead of a lost update.

Failure modes:
    - ImmutabilityViolationError on a frozen-field change or DELETE.
    - sqlalchemy.orm.exc.StaleDataError on a version conflict (mapped to
      OptimisticLockError by the store).
"""

from sqlalchemy import JSON, BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import TrackedBase


class SiteInspection(TrackedBase):
    """A field inspection of one site, with its ordered findings."""

    __tablename__ = "site_inspections"

    __table_args__ = (
        Index("idx_site_inspections_insertion_seq", "insertion_seq"),
        Index("idx_site_inspections_status", "status"),
    )

    site_address: Mapped[str] = mapped_column(String(500), nullable=False)
    inspection_type: Mapped[str] = mapped_column(String(200), nullable=False)

    # Ordered list of free-form finding objects
    findings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Wire value of InspectionStatus
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    inspector_id: Mapped[str] = mapped_column(String(100), nullable=False)
    report_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Allocated from the "site_inspection" sequence; defines list order
    insertion_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<SiteInspection {self.id} {self.status} v{self.version}>"
