"""
Permission matrix (``compliance_kernel.domain.permissions``).

Responsibility
--------------
The explicit, closed-world grant table consulted by ``RoleAuthority``.
Absence of a (resource kind, action) pair for a role means denied.

Architecture position
---------------------
**Kernel domain layer** -- pure data.  Immutable after import, so it is
safe to read from any number of threads without synchronization.

Matrix
------
    Role            | SiteInspection         | ComplianceTemplate | AuditLog
    ----------------|------------------------|--------------------|---------
    Director        | Read, Create, Update   | Read               | Read
    ProjectManager  | Read, Create, Update   | Read               | Read
    Client          | Read                   | Read               | --
    Technician      | Read, Create           | Read               | --

Clients and Technicians hold disjoint, non-nested grants; the matrix is
not a hierarchy.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from compliance_kernel.domain.access import Action, ResourceKind, Role

Grant = tuple[ResourceKind, Action]
PermissionMatrix = Mapping[Role, frozenset[Grant]]


def _grants(kind: ResourceKind, *actions: Action) -> set[Grant]:
    return {(kind, action) for action in actions}


def build_matrix(entries: Mapping[Role, Iterable[Grant]]) -> PermissionMatrix:
    """Freeze a role -> grants mapping.  Roles not listed get no grants."""
    return MappingProxyType(
        {role: frozenset(entries.get(role, ())) for role in Role}
    )


DEFAULT_PERMISSION_MATRIX: PermissionMatrix = build_matrix(
    {
        Role.DIRECTOR: (
            _grants(ResourceKind.SITE_INSPECTION, Action.READ, Action.CREATE, Action.UPDATE)
            | _grants(ResourceKind.COMPLIANCE_TEMPLATE, Action.READ)
            | _grants(ResourceKind.AUDIT_LOG, Action.READ)
        ),
        Role.PROJECT_MANAGER: (
            _grants(ResourceKind.SITE_INSPECTION, Action.READ, Action.CREATE, Action.UPDATE)
            | _grants(ResourceKind.COMPLIANCE_TEMPLATE, Action.READ)
            | _grants(ResourceKind.AUDIT_LOG, Action.READ)
        ),
        Role.CLIENT: (
            _grants(ResourceKind.SITE_INSPECTION, Action.READ)
            | _grants(ResourceKind.COMPLIANCE_TEMPLATE, Action.READ)
        ),
        Role.TECHNICIAN: (
            _grants(ResourceKind.SITE_INSPECTION, Action.READ, Action.CREATE)
            | _grants(ResourceKind.COMPLIANCE_TEMPLATE, Action.READ)
        ),
    }
)
