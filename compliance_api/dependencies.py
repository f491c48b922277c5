"""FastAPI dependencies: the calling user and the access gate."""

from typing import Optional

from fastapi import Header, Request

from compliance_kernel.domain.access import Role, User
from compliance_kernel.logging_config import get_logger
from compliance_kernel.services.access_gate import AccessGate

logger = get_logger("api.dependencies")


def get_gate(request: Request) -> AccessGate:
    return request.app.state.gate


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> User:
    """
    Resolve the caller from identity headers set by the session layer.

    A missing or unrecognised role yields an unauthenticated user; the gate
    turns that into a 401.
    """
    try:
        role = Role.parse(x_user_role)
    except ValueError:
        logger.warning("unrecognised_role_header", extra={"role_header": x_user_role})
        role = None

    user_id = (x_user_id or "").strip() or "anonymous"
    display_name = (x_user_name or "").strip() or user_id
    return User(id=user_id, display_name=display_name, role=role)
