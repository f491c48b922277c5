"""
Access vocabulary (``compliance_kernel.domain.access``).

Responsibility
--------------
The closed vocabulary of authorization: roles, actions, resource kinds,
and the ``User`` value that carries an already-resolved identity into
every gate call.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* The role set is fixed; ordering is display order only.
* A ``User`` holds at most one role.  Switching roles means constructing
  a new ``User``; there is no ambient "current user".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Identity category that determines permissions (display order)."""

    DIRECTOR = "Director"
    PROJECT_MANAGER = "Project Manager"
    CLIENT = "Client"
    TECHNICIAN = "Technician"

    @classmethod
    def parse(cls, value: str | None) -> Role | None:
        """Resolve a wire value or member-style name; None/blank -> None.

        Raises:
            ValueError: for a non-blank value that names no role.
        """
        if value is None or not value.strip():
            return None
        text = value.strip()
        for role in cls:
            if text == role.value:
                return role
        compact = text.replace(" ", "").replace("_", "").lower()
        for role in cls:
            if compact == role.value.replace(" ", "").lower():
                return role
        raise ValueError(f"Unknown role: {value!r}")


class Action(str, Enum):
    READ = "Read"
    CREATE = "Create"
    UPDATE = "Update"


class ResourceKind(str, Enum):
    SITE_INSPECTION = "SiteInspection"
    COMPLIANCE_TEMPLATE = "ComplianceTemplate"
    AUDIT_LOG = "AuditLog"


@dataclass(frozen=True)
class User:
    """
    The calling identity, resolved by the session collaborator.

    ``role is None`` means the caller is unauthenticated.
    """

    id: str
    display_name: str
    role: Role | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.role is not None


ANONYMOUS = User(id="anonymous", display_name="Anonymous", role=None)
