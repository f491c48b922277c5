"""
compliance_config -- single public entrypoint for access configuration.

Responsibility:
    Provides the ONLY way to obtain the permission matrix, template catalog
    and process settings at runtime: ``get_active_config()`` and
    ``load_settings()``.  No other component reads configuration files or
    environment variables directly.

Architecture position:
    Configuration -- sits above ``compliance_kernel`` and below
    ``compliance_api`` / ``scripts``.  The kernel MUST NEVER import from
    ``compliance_config``; the compiled artifact is translated into kernel
    inputs (a permission matrix and ComplianceTemplate tuples) here.

Invariants enforced:
    - Single entrypoint: all runtime config flows through this module.
    - Vocabulary closure: a policy naming an unknown role, action, resource
      kind or jurisdiction is rejected, never partially applied.
    - Deterministic: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configured policy file does not exist.
    - ``ValueError`` -- the policy names vocabulary the kernel does not know.
    - ``yaml.YAMLError`` -- the policy file is not valid YAML.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from compliance_config.loader import compile_policy, load_policy_set
from compliance_config.schema import CompiledAccessPolicy, RuntimeSettings

_logger = logging.getLogger("compliance_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "COMPLIANCE_CONFIG_PATH"
DEFAULT_DATABASE_URL = "sqlite:///./compliance.db"
DEFAULT_LOG_LEVEL = "INFO"

__all__ = [
    "CompiledAccessPolicy",
    "RuntimeSettings",
    "get_active_config",
    "load_settings",
]


def get_active_config(config_path: Path | str | None = None) -> CompiledAccessPolicy:
    """The ONLY public configuration entrypoint.

    Resolution order for the policy file: the ``config_path`` argument,
    then the ``COMPLIANCE_CONFIG_PATH`` environment variable, then the
    bundled ``sets/default.yaml``.

    Non-goals:
        - Does NOT cache; callers hold the returned policy for the life
          of the process (the matrix is not extensible at runtime).

    Raises:
        FileNotFoundError: If the policy file does not exist.
        ValueError: If the policy fails vocabulary validation.
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH)

    policy = compile_policy(load_policy_set(path))

    _logger.info(
        "config_loaded",
        extra={
            "config_id": policy.config_id,
            "config_version": policy.version,
            "checksum": policy.checksum,
            "config_path": str(path),
            "role_count": sum(1 for grants in policy.permission_matrix.values() if grants),
            "template_count": len(policy.templates),
        },
    )
    return policy


def load_settings() -> RuntimeSettings:
    """Read ``DATABASE_URL``, ``LOG_LEVEL`` and the policy path from the environment."""
    return RuntimeSettings(
        database_url=os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL),
        log_level=os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        config_path=os.environ.get(CONFIG_PATH_ENV),
    )
