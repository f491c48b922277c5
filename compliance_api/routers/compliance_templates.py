"""Compliance templates router -- read-only reference catalog."""

from fastapi import APIRouter, Depends

from compliance_api.dependencies import get_current_user, get_gate
from compliance_api.schemas import TemplateOut
from compliance_kernel.domain.access import Action, ResourceKind, User
from compliance_kernel.services.access_gate import AccessGate

router = APIRouter(prefix="/compliance-templates", tags=["compliance-templates"])


@router.get("", response_model=list[TemplateOut])
def list_templates(
    gate: AccessGate = Depends(get_gate),
    user: User = Depends(get_current_user),
):
    """Bare array of ``{id, name, type}``."""
    templates = gate.execute(user, Action.READ, ResourceKind.COMPLIANCE_TEMPLATE)
    return [TemplateOut.from_template(t) for t in templates]
