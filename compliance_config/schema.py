"""
Access policy schema.

Defines the human-authored source artifact (``AccessPolicySet``) that the
YAML loader produces, and the runtime artifact (``CompiledAccessPolicy``)
that ``get_active_config()`` returns.

Key distinction:
  AccessPolicySet        = source artifact (strings, as written in YAML)
  CompiledAccessPolicy   = runtime artifact (kernel enums, frozen matrix)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from compliance_kernel.domain.dtos import ComplianceTemplate
from compliance_kernel.domain.permissions import PermissionMatrix


@dataclass(frozen=True)
class RoleGrantDef:
    """One role's grants, as written: resource kind name -> action names."""

    role: str
    grants: tuple[tuple[str, tuple[str, ...]], ...] = ()


@dataclass(frozen=True)
class TemplateDef:
    id: str
    name: str
    type: str


@dataclass(frozen=True)
class AccessPolicySet:
    """A complete, versioned policy as loaded from one YAML file."""

    config_id: str
    version: int
    description: str = ""
    roles: tuple[RoleGrantDef, ...] = ()
    templates: tuple[TemplateDef, ...] = ()
    checksum: str = ""


@dataclass(frozen=True)
class CompiledAccessPolicy:
    """
    The runtime configuration artifact.

    ``permission_matrix`` is ready to hand to ``AccessGate.from_matrix``;
    ``templates`` to the gate's template catalog.
    """

    config_id: str
    version: int
    checksum: str
    permission_matrix: PermissionMatrix
    templates: tuple[ComplianceTemplate, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RuntimeSettings:
    """Process settings read from the environment."""

    database_url: str
    log_level: str
    config_path: str | None = None
