"""Audit trail router -- ledger review, manual entries and chain verification."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from compliance_api.dependencies import get_current_user, get_gate
from compliance_api.errors import ApiError
from compliance_api.schemas import (
    AuditEntryOut,
    AuditLogResponse,
    ChainVerificationResponse,
    ManualAuditRequest,
    ManualAuditResponse,
)
from compliance_kernel.domain.access import Action, ResourceKind, User
from compliance_kernel.exceptions import StorageUnavailableError
from compliance_kernel.services.access_gate import AccessGate

router = APIRouter(prefix="/audit-trail", tags=["audit-trail"])


@router.get("", response_model=AuditLogResponse)
def list_audit_log(
    after_id: Optional[int] = Query(default=None, alias="afterId", ge=0),
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    resource_kind: Optional[str] = Query(default=None, alias="resourceKind"),
    resource_id: Optional[str] = Query(default=None, alias="resourceId"),
    gate: AccessGate = Depends(get_gate),
    user: User = Depends(get_current_user),
):
    """Entries oldest first; ``afterId``/``limit`` page, ``resourceKind``/``resourceId`` trace."""
    if resource_kind is not None or resource_id is not None:
        payload = {"resource_kind": resource_kind, "resource_id": resource_id}
    elif after_id is not None or limit is not None:
        payload = {"after_id": after_id, "limit": limit}
    else:
        payload = None

    try:
        entries = gate.execute(user, Action.READ, ResourceKind.AUDIT_LOG, payload)
    except StorageUnavailableError as exc:
        raise ApiError(500, "Failed to fetch audit log", exc.code) from exc
    return AuditLogResponse(audit_log=[AuditEntryOut.from_record(e) for e in entries])


@router.post("", response_model=ManualAuditResponse)
def record_audit_entry(
    req: ManualAuditRequest,
    gate: AccessGate = Depends(get_gate),
    user: User = Depends(get_current_user),
):
    """Record a caller-described event (e.g. a contract signature)."""
    if any(
        value is None or (isinstance(value, str) and not value.strip())
        for value in (req.action, req.user, req.details)
    ):
        raise ApiError(
            400,
            "Missing required fields: action, user, details",
            "MISSING_REQUIRED_FIELDS",
        )

    try:
        gate.record_manual_entry(user, req.action, req.user, req.details)
    except StorageUnavailableError as exc:
        raise ApiError(500, "Failed to record audit entry", exc.code) from exc
    return ManualAuditResponse()


@router.get("/verify", response_model=ChainVerificationResponse)
def verify_audit_chain(
    gate: AccessGate = Depends(get_gate),
    user: User = Depends(get_current_user),
):
    result = gate.verify_ledger(user)
    return ChainVerificationResponse(
        valid=result.valid,
        entries=result.entry_count,
        broken_at=result.broken_at,
    )
