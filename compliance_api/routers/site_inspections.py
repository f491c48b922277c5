"""Site inspections router -- list, create, fetch, and move through the lifecycle."""

from fastapi import APIRouter, Depends

from compliance_api.dependencies import get_current_user, get_gate
from compliance_api.errors import ApiError
from compliance_api.schemas import (
    InspectionCreateRequest,
    InspectionListResponse,
    InspectionOut,
    InspectionResponse,
    StatusUpdateRequest,
)
from compliance_kernel.domain.access import Action, ResourceKind, User
from compliance_kernel.exceptions import StorageUnavailableError
from compliance_kernel.services.access_gate import AccessGate

router = APIRouter(prefix="/site-inspections", tags=["site-inspections"])


@router.get("", response_model=InspectionListResponse)
def list_inspections(
    gate: AccessGate = Depends(get_gate),
    user: User = Depends(get_current_user),
):
    """All inspections, in the order they were created."""
    try:
        records = gate.execute(user, Action.READ, ResourceKind.SITE_INSPECTION)
    except StorageUnavailableError as exc:
        raise ApiError(500, "Failed to fetch site inspections", exc.code) from exc
    return InspectionListResponse(
        inspections=[InspectionOut.from_record(r) for r in records]
    )


@router.post("", response_model=InspectionResponse)
def create_inspection(
    req: InspectionCreateRequest,
    gate: AccessGate = Depends(get_gate),
    user: User = Depends(get_current_user),
):
    try:
        record = gate.execute(
            user, Action.CREATE, ResourceKind.SITE_INSPECTION, req.to_payload()
        )
    except StorageUnavailableError as exc:
        raise ApiError(500, "Failed to create site inspection", exc.code) from exc
    return InspectionResponse(inspection=InspectionOut.from_record(record))


@router.get("/{inspection_id}", response_model=InspectionResponse)
def get_inspection(
    inspection_id: str,
    gate: AccessGate = Depends(get_gate),
    user: User = Depends(get_current_user),
):
    try:
        record = gate.execute(
            user, Action.READ, ResourceKind.SITE_INSPECTION, {"id": inspection_id}
        )
    except StorageUnavailableError as exc:
        raise ApiError(500, "Failed to fetch site inspection", exc.code) from exc
    return InspectionResponse(inspection=InspectionOut.from_record(record))


@router.patch("/{inspection_id}/status", response_model=InspectionResponse)
def update_inspection_status(
    inspection_id: str,
    req: StatusUpdateRequest,
    gate: AccessGate = Depends(get_gate),
    user: User = Depends(get_current_user),
):
    """Completed and Flagged are terminal; any other move is allowed."""
    try:
        record = gate.execute(
            user,
            Action.UPDATE,
            ResourceKind.SITE_INSPECTION,
            {"id": inspection_id, "status": req.status},
        )
    except StorageUnavailableError as exc:
        raise ApiError(500, "Failed to update site inspection", exc.code) from exc
    return InspectionResponse(inspection=InspectionOut.from_record(record))
