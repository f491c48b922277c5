"""
RoleAuthority -- permission checks against the closed role matrix.

Responsibility:
    Answer "may this role perform this action on this kind of resource?"
    from an immutable permission matrix.  Also exposes a role's grant set
    so presentation code can hide controls without owning a second copy
    of the rules.

Architecture position:
    Kernel > Services.  Pure: no session, no clock, no I/O.  Called only
    by AccessGate; outer layers never consult it directly.

Invariants:
    - Closed world: a (kind, action) pair absent from the role's grants is
      denied.
    - ``role is None`` (unauthenticated) is denied everything.
    - The matrix is frozen at construction; concurrent readers need no
      locking.
"""

from __future__ import annotations

from compliance_kernel.domain.access import Action, ResourceKind, Role
from compliance_kernel.domain.permissions import (
    DEFAULT_PERMISSION_MATRIX,
    Grant,
    PermissionMatrix,
    build_matrix,
)


class RoleAuthority:
    """Static permission matrix lookup."""

    def __init__(self, matrix: PermissionMatrix | None = None):
        self._matrix = build_matrix(
            DEFAULT_PERMISSION_MATRIX if matrix is None else matrix
        )

    def authorize(
        self,
        role: Role | None,
        action: Action,
        resource_kind: ResourceKind,
    ) -> bool:
        """Return True iff ``role`` is granted ``action`` on ``resource_kind``."""
        if role is None:
            return False
        return (resource_kind, action) in self._matrix.get(role, frozenset())

    def permissions_for(self, role: Role | None) -> frozenset[Grant]:
        """Every (kind, action) pair granted to ``role``; empty for None."""
        if role is None:
            return frozenset()
        return self._matrix.get(role, frozenset())
