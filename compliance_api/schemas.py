"""Request/response schemas.  JSON is camelCase on the wire."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from compliance_kernel.domain.dtos import (
    AuditEntryRecord,
    ComplianceTemplate,
    SiteInspectionRecord,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Requests ────────────────────────────────────────────────────────────────
# Required fields are Optional here: the kernel reports every missing field
# together, which pydantic's per-field errors would pre-empt.


class InspectionCreateRequest(CamelModel):
    site_address: Optional[str] = None
    inspection_type: Optional[str] = None
    inspector_id: Optional[str] = None
    findings: Optional[list[Any]] = None
    status: Optional[str] = None
    report_url: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=False)


class StatusUpdateRequest(CamelModel):
    status: Optional[str] = None


class ManualAuditRequest(CamelModel):
    action: Optional[str] = None
    user: Optional[str] = None
    details: Any = None


# ── Responses ───────────────────────────────────────────────────────────────


class InspectionOut(CamelModel):
    id: str
    site_address: str
    inspection_type: str
    findings: list[Any]
    status: str
    inspector_id: str
    report_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: SiteInspectionRecord) -> "InspectionOut":
        return cls(
            id=record.id,
            site_address=record.site_address,
            inspection_type=record.inspection_type,
            findings=list(record.findings),
            status=record.status.value,
            inspector_id=record.inspector_id,
            report_url=record.report_url,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class InspectionResponse(CamelModel):
    inspection: InspectionOut
    success: bool = True


class InspectionListResponse(CamelModel):
    inspections: list[InspectionOut]
    success: bool = True


class AuditEntryOut(CamelModel):
    id: int
    timestamp: datetime
    user: str
    user_id: str
    role: Optional[str] = None
    action: str
    resource_kind: str
    resource_id: Optional[str] = None
    details: dict[str, Any]
    hash: str

    @classmethod
    def from_record(cls, record: AuditEntryRecord) -> "AuditEntryOut":
        return cls(
            id=record.id,
            timestamp=record.timestamp,
            user=record.actor_name,
            user_id=record.actor_id,
            role=record.actor_role,
            action=record.action,
            resource_kind=record.resource_kind,
            resource_id=record.resource_id,
            details=record.details,
            hash=record.hash,
        )


class AuditLogResponse(CamelModel):
    audit_log: list[AuditEntryOut]
    success: bool = True


class ManualAuditResponse(CamelModel):
    success: bool = True
    message: str = "Audit entry recorded"


class ChainVerificationResponse(CamelModel):
    valid: bool
    entries: int
    broken_at: Optional[str] = None


class TemplateOut(CamelModel):
    id: str
    name: str
    type: str

    @classmethod
    def from_template(cls, template: ComplianceTemplate) -> "TemplateOut":
        return cls(
            id=template.id,
            name=template.name,
            type=template.jurisdiction_level.value,
        )


class GrantOut(CamelModel):
    resource_kind: str
    action: str


class PermissionsResponse(CamelModel):
    role: Optional[str] = None
    permissions: list[GrantOut]
    success: bool = True
