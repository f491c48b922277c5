"""
ResourceStore -- typed persistence for site inspections and the template catalog.

Responsibility:
    Create, fetch, list and transition site inspections; list the
    read-only compliance template catalog.  Validation and the transition
    policy come from ``domain.inspection``; this module adds identity,
    timestamps, ordering and concurrency control.

Architecture position:
    Kernel > Services.  Called only by AccessGate.  Flush-only: the gate
    commits.

Invariants enforced:
    - id (uuid4) and created_at are assigned once, here, on create.
    - list() returns insertion order via insertion_seq, allocated from the
      locked "site_inspection" sequence.
    - update_status is an atomic read-modify-write per id: the row is read
      with FOR UPDATE (PostgreSQL) and written with a version check on every
      backend.  A lost race raises OptimisticLockError.

Failure modes:
    - MissingFieldsError / InvalidFieldError / InvalidStatusError on create.
    - InspectionNotFoundError for unknown or malformed ids.
    - InvalidTransitionError when leaving a terminal status.
    - OptimisticLockError when another transaction updated the same row.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from compliance_kernel.domain.access import User
from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.dtos import ComplianceTemplate, SiteInspectionRecord
from compliance_kernel.domain.inspection import (
    InspectionStatus,
    SiteInspectionDraft,
    check_transition,
)
from compliance_kernel.domain.templates import DEFAULT_TEMPLATES
from compliance_kernel.exceptions import InspectionNotFoundError, OptimisticLockError
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.site_inspection import SiteInspection
from compliance_kernel.services.base import BaseService
from compliance_kernel.services.sequence_service import SequenceService

logger = get_logger("services.resource_store")

SYSTEM_ACTOR_ID = "system"


def _parse_id(inspection_id: Any) -> UUID | None:
    if isinstance(inspection_id, UUID):
        return inspection_id
    try:
        return UUID(str(inspection_id))
    except (TypeError, ValueError):
        return None


class SiteInspectionStore(BaseService):
    """CRUD (without delete) over site inspections."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequence_service = SequenceService(session)

    def create(
        self,
        draft: SiteInspectionDraft | Mapping[str, Any],
        actor: User | None = None,
    ) -> SiteInspectionRecord:
        """
        Persist a new inspection.

        Accepts an already validated draft or a raw snake_case payload,
        which is validated here.
        """
        if not isinstance(draft, SiteInspectionDraft):
            draft = SiteInspectionDraft.from_payload(draft)

        now = self.clock.now()
        model = SiteInspection(
            id=uuid4(),
            site_address=draft.site_address,
            inspection_type=draft.inspection_type,
            findings=list(draft.findings),
            status=draft.status.value,
            inspector_id=draft.inspector_id,
            report_url=draft.report_url,
            insertion_seq=self._sequence_service.next_value(
                SequenceService.SITE_INSPECTION
            ),
            created_at=now,
            updated_at=now,
            created_by_id=actor.id if actor is not None else SYSTEM_ACTOR_ID,
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "inspection_created",
            extra={
                "inspection_id": str(model.id),
                "status": model.status,
                "finding_count": len(model.findings),
            },
        )
        return SiteInspectionRecord.from_model(model)

    def _load(self, inspection_id: Any, *, for_update: bool = False) -> SiteInspection:
        parsed = _parse_id(inspection_id)
        if parsed is None:
            raise InspectionNotFoundError(str(inspection_id))

        stmt = select(SiteInspection).where(SiteInspection.id == parsed)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        model = self.session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise InspectionNotFoundError(str(inspection_id))
        return model

    def get(self, inspection_id: Any) -> SiteInspectionRecord:
        return SiteInspectionRecord.from_model(self._load(inspection_id))

    def list(self) -> list[SiteInspectionRecord]:
        """All inspections in insertion order."""
        models = self.session.execute(
            select(SiteInspection).order_by(SiteInspection.insertion_seq)
        ).scalars()
        return [SiteInspectionRecord.from_model(model) for model in models]

    def update_status(
        self,
        inspection_id: Any,
        new_status: InspectionStatus | str,
        actor: User | None = None,
    ) -> tuple[SiteInspectionRecord, InspectionStatus]:
        """
        Move an inspection to ``new_status``.

        Returns:
            The updated record and the status it moved from.

        Raises:
            InspectionNotFoundError, InvalidStatusError,
            InvalidTransitionError, OptimisticLockError.
        """
        target = InspectionStatus.parse(new_status)
        model = self._load(inspection_id, for_update=True)
        current = InspectionStatus.parse(model.status)

        inspection_key = str(model.id)
        check_transition(inspection_key, current, target)

        model.status = target.value
        model.updated_at = self.clock.now()
        model.updated_by_id = actor.id if actor is not None else SYSTEM_ACTOR_ID
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "inspection_update_conflict",
                extra={"inspection_id": inspection_key},
            )
            raise OptimisticLockError("SiteInspection", inspection_key) from exc

        logger.info(
            "inspection_status_updated",
            extra={
                "inspection_id": inspection_key,
                "from_status": current.value,
                "to_status": target.value,
                "version": model.version,
            },
        )
        return SiteInspectionRecord.from_model(model), current


class TemplateCatalog:
    """Read-only compliance template reference data."""

    def __init__(self, templates: Iterable[ComplianceTemplate] | None = None):
        self._templates = tuple(DEFAULT_TEMPLATES if templates is None else templates)

    def list(self) -> list[ComplianceTemplate]:
        return list(self._templates)

