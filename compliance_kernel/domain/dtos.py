"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable records that cross the access gate: the
    SiteInspectionRecord returned by the store, the AuditEntryDraft handed
    to the ledger and the AuditEntryRecord it returns, and the read-only
    ComplianceTemplate catalog entry.

Architecture position:
    Kernel > Domain -- free of database access.  ``from_model()`` class
    methods are boundary converters invoked only from the service layer.

Invariants enforced:
    - Services accept and return DTOs, never ORM entities, so callers
      cannot mutate persisted rows behind the gate's back.
    - AuditEntryRecord.id is the ledger sequence: the total order of all
      mutating actions.

Data flow:
    payload -> SiteInspectionDraft -> SiteInspection (ORM) -> SiteInspectionRecord
    AuditEntryDraft -> AuditEntry (ORM) -> AuditEntryRecord
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from compliance_kernel.domain.access import ResourceKind, User
from compliance_kernel.domain.inspection import InspectionStatus

if TYPE_CHECKING:
    from compliance_kernel.models.audit_entry import AuditEntry as AuditEntryModel
    from compliance_kernel.models.site_inspection import (
        SiteInspection as SiteInspectionModel,
    )


@dataclass(frozen=True)
class SiteInspectionRecord:
    """
    Snapshot of a persisted site inspection.

    Guarantees:
        - ``id`` and ``created_at`` are the values assigned at creation.
        - ``findings`` preserves the submitted order.
    """

    id: str
    site_address: str
    inspection_type: str
    findings: tuple[Any, ...]
    status: InspectionStatus
    inspector_id: str
    report_url: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, model: SiteInspectionModel) -> SiteInspectionRecord:
        return cls(
            id=str(model.id),
            site_address=model.site_address,
            inspection_type=model.inspection_type,
            findings=tuple(copy.deepcopy(model.findings or [])),
            status=InspectionStatus.parse(model.status),
            inspector_id=model.inspector_id,
            report_url=model.report_url,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


@dataclass(frozen=True)
class AuditEntryDraft:
    """
    What the gate asks the ledger to record.

    ``action`` is an ``Action`` value for gate-driven entries or a free
    label (e.g. ``CONTRACT_SIGNED``) for manual entries.
    """

    acting_user: User
    action: str
    resource_kind: ResourceKind
    resource_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.action or not str(self.action).strip():
            raise ValueError("AuditEntryDraft requires a non-empty action")
        if isinstance(self.action, Enum):
            object.__setattr__(self, "action", self.action.value)


@dataclass(frozen=True)
class AuditEntryRecord:
    """One immutable ledger entry."""

    id: int
    timestamp: datetime
    actor_id: str
    actor_name: str
    actor_role: str | None
    action: str
    resource_kind: str
    resource_id: str | None
    details: dict[str, Any]
    prev_hash: str | None
    hash: str

    @classmethod
    def from_model(cls, model: AuditEntryModel) -> AuditEntryRecord:
        return cls(
            id=model.seq,
            timestamp=model.occurred_at,
            actor_id=model.actor_id,
            actor_name=model.actor_name,
            actor_role=model.actor_role,
            action=model.action,
            resource_kind=model.resource_kind,
            resource_id=model.resource_id,
            details=copy.deepcopy(model.details or {}),
            prev_hash=model.prev_hash,
            hash=model.hash,
        )


class JurisdictionLevel(str, Enum):
    FEDERAL = "Federal"
    STATE = "State"
    LOCAL = "Local"


@dataclass(frozen=True)
class ComplianceTemplate:
    """Read-only reference data, provisioned out-of-band."""

    id: str
    name: str
    jurisdiction_level: JurisdictionLevel
