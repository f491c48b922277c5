"""
Access policy configuration tests.

Verifies:
- The bundled policy compiles to the default permission matrix and catalog
- Vocabulary errors are rejected at load time
- Resolution order: argument, then COMPLIANCE_CONFIG_PATH, then the bundled set
- Runtime settings come from the environment
"""

from pathlib import Path

import pytest
import yaml

from compliance_config import (
    CONFIG_PATH_ENV,
    DEFAULT_DATABASE_URL,
    get_active_config,
    load_settings,
)
from compliance_config.loader import (
    compile_policy,
    compute_checksum,
    load_policy_set,
    parse_policy_set,
)
from compliance_kernel.domain.access import Action, ResourceKind, Role
from compliance_kernel.domain.permissions import DEFAULT_PERMISSION_MATRIX
from compliance_kernel.domain.templates import DEFAULT_TEMPLATES

BASE = {
    "config_id": "TEST-POLICY",
    "version": 3,
    "roles": [
        {"role": "Director", "grants": {"SiteInspection": ["Read", "Update"]}},
        {"role": "ProjectManager", "grants": {"AuditLog": ["Read"]}},
    ],
    "templates": [{"id": "t-1", "name": "Template One", "type": "State"}],
}


def _write(tmp_path: Path, data: dict, name: str = "policy.yaml") -> Path:
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestBundledPolicy:
    def test_matches_kernel_defaults(self):
        policy = get_active_config()

        assert policy.config_id == "SITE-COMPLIANCE-DEFAULT"
        assert dict(policy.permission_matrix) == dict(DEFAULT_PERMISSION_MATRIX)
        assert tuple(policy.templates) == DEFAULT_TEMPLATES

    def test_load_is_logged(self, captured_logs):
        get_active_config()
        loaded = [r for r in captured_logs() if r["message"] == "config_loaded"]
        assert loaded[0]["config_id"] == "SITE-COMPLIANCE-DEFAULT"
        assert loaded[0]["template_count"] == 4


class TestCompile:
    def test_custom_policy(self, tmp_path):
        policy = get_active_config(_write(tmp_path, BASE))

        assert policy.version == 3
        assert policy.permission_matrix[Role.DIRECTOR] == {
            (ResourceKind.SITE_INSPECTION, Action.READ),
            (ResourceKind.SITE_INSPECTION, Action.UPDATE),
        }
        assert policy.permission_matrix[Role.PROJECT_MANAGER] == {
            (ResourceKind.AUDIT_LOG, Action.READ)
        }
        assert policy.permission_matrix[Role.CLIENT] == frozenset()
        assert [t.id for t in policy.templates] == ["t-1"]

    def test_checksum_is_stable(self):
        assert parse_policy_set(BASE).checksum == compute_checksum(dict(BASE))
        changed = {**BASE, "version": 4}
        assert parse_policy_set(changed).checksum != parse_policy_set(BASE).checksum

    @pytest.mark.parametrize(
        "mutate,message",
        [
            (lambda d: d["roles"].append({"role": "Auditor", "grants": {}}), "role"),
            (lambda d: d["roles"].append({"role": "Director", "grants": {}}), "twice"),
            (lambda d: d["roles"][0]["grants"].update({"Invoice": ["Read"]}), "resource kind"),
            (lambda d: d["roles"][0]["grants"].update({"AuditLog": ["Delete"]}), "action"),
            (lambda d: d["templates"].append(dict(d["templates"][0])), "Duplicate template"),
            (lambda d: d["templates"][0].update({"type": "County"}), "jurisdiction"),
        ],
    )
    def test_rejects_bad_vocabulary(self, tmp_path, mutate, message):
        data = yaml.safe_load(yaml.safe_dump(BASE))
        mutate(data)

        with pytest.raises(ValueError, match=message):
            compile_policy(load_policy_set(_write(tmp_path, data)))

    def test_missing_config_id(self, tmp_path):
        data = {k: v for k, v in BASE.items() if k != "config_id"}
        with pytest.raises(KeyError):
            load_policy_set(_write(tmp_path, data))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestResolution:
    def test_env_var_used(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(_write(tmp_path, BASE)))
        assert get_active_config().config_id == "TEST-POLICY"

    def test_argument_beats_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(tmp_path / "absent.yaml"))
        other = _write(tmp_path, {**BASE, "config_id": "ARG"}, "arg.yaml")
        assert get_active_config(other).config_id == "ARG"


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "LOG_LEVEL", CONFIG_PATH_ENV):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings()
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.log_level == "INFO"
        assert settings.config_path is None

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///other.db")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = load_settings()
        assert settings.database_url == "sqlite:///other.db"
        assert settings.log_level == "DEBUG"
