"""Permissions router -- the caller's grants, for hiding controls client-side.

Informational only: every call is still checked by the gate.
"""

from fastapi import APIRouter, Depends

from compliance_api.dependencies import get_current_user, get_gate
from compliance_api.schemas import GrantOut, PermissionsResponse
from compliance_kernel.domain.access import User
from compliance_kernel.services.access_gate import AccessGate

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("", response_model=PermissionsResponse)
def my_permissions(
    gate: AccessGate = Depends(get_gate),
    user: User = Depends(get_current_user),
):
    grants = sorted(gate.permissions_for(user), key=lambda g: (g[0].value, g[1].value))
    return PermissionsResponse(
        role=user.role.value if user.role is not None else None,
        permissions=[GrantOut(resource_kind=k.value, action=a.value) for k, a in grants],
    )
