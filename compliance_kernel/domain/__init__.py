"""
Pure domain layer.

Value objects, DTOs and policy functions with NO dependencies on the ORM,
the database, or I/O.  Time enters only through an injected Clock.
"""

from compliance_kernel.domain.access import ANONYMOUS, Action, ResourceKind, Role, User
from compliance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from compliance_kernel.domain.dtos import (
    AuditEntryDraft,
    AuditEntryRecord,
    ComplianceTemplate,
    JurisdictionLevel,
    SiteInspectionRecord,
)
from compliance_kernel.domain.inspection import (
    InspectionStatus,
    SiteInspectionDraft,
    can_transition,
)
from compliance_kernel.domain.permissions import DEFAULT_PERMISSION_MATRIX

__all__ = [
    "ANONYMOUS",
    "Action",
    "AuditEntryDraft",
    "AuditEntryRecord",
    "Clock",
    "ComplianceTemplate",
    "DEFAULT_PERMISSION_MATRIX",
    "DeterministicClock",
    "InspectionStatus",
    "JurisdictionLevel",
    "ResourceKind",
    "Role",
    "SiteInspectionDraft",
    "SiteInspectionRecord",
    "SystemClock",
    "User",
    "can_transition",
]
