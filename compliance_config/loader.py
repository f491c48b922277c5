"""
Configuration Loader (``compliance_config.loader``).

Responsibility
--------------
Loads an access policy YAML file, parses it into ``schema`` dataclasses,
and compiles it against the kernel vocabulary.  This is internal tooling;
the single public entry point is ``compliance_config.get_active_config()``.

Invariants enforced
-------------------
* Every role, resource kind, action and jurisdiction named in YAML must
  exist in the kernel's closed vocabulary; anything else is a
  ``ValueError``.  Configuration can narrow or restate the matrix, never
  invent vocabulary.
* Template ids are unique.
* ``compute_checksum`` is deterministic: same parsed content, same hash.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown vocabulary or duplicate ids  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from compliance_config.schema import (
    AccessPolicySet,
    CompiledAccessPolicy,
    RoleGrantDef,
    TemplateDef,
)
from compliance_kernel.domain.access import Action, ResourceKind, Role
from compliance_kernel.domain.dtos import ComplianceTemplate, JurisdictionLevel
from compliance_kernel.domain.permissions import build_matrix


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_role(data: dict[str, Any]) -> RoleGrantDef:
    grants = data.get("grants") or {}
    if not isinstance(grants, dict):
        raise ValueError(f"grants for role {data.get('role')!r} must be a mapping")
    return RoleGrantDef(
        role=data["role"],
        grants=tuple(
            (kind, tuple(actions or ()))
            for kind, actions in grants.items()
        ),
    )


def parse_template(data: dict[str, Any]) -> TemplateDef:
    return TemplateDef(id=data["id"], name=data["name"], type=data["type"])


def parse_policy_set(data: dict[str, Any]) -> AccessPolicySet:
    """
    Parse a loaded YAML document into an ``AccessPolicySet``.

    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
    """
    return AccessPolicySet(
        config_id=data["config_id"],
        version=int(data["version"]),
        description=data.get("description", ""),
        roles=tuple(parse_role(r) for r in data.get("roles", [])),
        templates=tuple(parse_template(t) for t in data.get("templates", [])),
        checksum=compute_checksum(data),
    )


def load_policy_set(path: Path) -> AccessPolicySet:
    return parse_policy_set(load_yaml_file(path))


def _vocab(enum_cls, value: str, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"Unknown {what} in access policy: {value!r}") from None


def compile_policy(policy_set: AccessPolicySet) -> CompiledAccessPolicy:
    """
    Validate an ``AccessPolicySet`` against the kernel vocabulary.

    Roles may be written as wire values ("Project Manager") or member-style
    names ("ProjectManager").  Roles the policy omits get no grants.

    Raises:
        ValueError: unknown role/kind/action/jurisdiction, a role listed
            twice, or a duplicate template id.
    """
    entries: dict[Role, set[tuple[ResourceKind, Action]]] = {}
    for role_def in policy_set.roles:
        try:
            role = Role.parse(role_def.role)
        except ValueError:
            raise ValueError(
                f"Unknown role in access policy: {role_def.role!r}"
            ) from None
        if role is None:
            raise ValueError("Role name in access policy must not be blank")
        if role in entries:
            raise ValueError(f"Role listed twice in access policy: {role.value!r}")

        grants: set[tuple[ResourceKind, Action]] = set()
        for kind_name, action_names in role_def.grants:
            kind = _vocab(ResourceKind, kind_name, "resource kind")
            for action_name in action_names:
                grants.add((kind, _vocab(Action, action_name, "action")))
        entries[role] = grants

    templates: list[ComplianceTemplate] = []
    seen: set[str] = set()
    for template_def in policy_set.templates:
        if template_def.id in seen:
            raise ValueError(f"Duplicate template id in access policy: {template_def.id!r}")
        seen.add(template_def.id)
        templates.append(
            ComplianceTemplate(
                id=template_def.id,
                name=template_def.name,
                jurisdiction_level=_vocab(
                    JurisdictionLevel, template_def.type, "jurisdiction level"
                ),
            )
        )

    return CompiledAccessPolicy(
        config_id=policy_set.config_id,
        version=policy_set.version,
        checksum=policy_set.checksum,
        permission_matrix=build_matrix(entries),
        templates=tuple(templates),
    )
