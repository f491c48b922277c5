#!/usr/bin/env python3
"""
Operator review of the audit ledger.

Usage:
    python -m scripts.audit_cli list [--after-id N] [--limit M]
    python -m scripts.audit_cli verify
    python -m scripts.audit_cli trace SiteInspection <inspection-id>

Examples:
    # Dump the whole ledger as JSON lines
    python -m scripts.audit_cli --db sqlite:///./compliance.db list

    # Check the hash chain (exit code 1 if broken)
    python -m scripts.audit_cli verify

The CLI is an ordinary gate caller acting as a Director operator; it
never reads the ledger tables directly.
"""

import argparse
import json
import sys
from dataclasses import asdict

from compliance_config import get_active_config, load_settings
from compliance_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from compliance_kernel.db.immutability import register_immutability_listeners
from compliance_kernel.domain.access import Action, ResourceKind, Role, User
from compliance_kernel.exceptions import ComplianceKernelError
from compliance_kernel.logging_config import configure_logging
from compliance_kernel.services.access_gate import AccessGate

OPERATOR = User(id="audit-cli", display_name="Audit CLI Operator", role=Role.DIRECTOR)


def _print_entry(entry) -> None:
    print(json.dumps(asdict(entry), sort_keys=True, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Review and verify the compliance audit ledger")
    parser.add_argument("--db", dest="db_url", default=None, help="Database URL (default: $DATABASE_URL)")
    parser.add_argument("--config", dest="config_path", default=None, help="Access policy YAML")

    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="Print ledger entries as JSON lines, oldest first")
    list_cmd.add_argument("--after-id", type=int, default=None)
    list_cmd.add_argument("--limit", type=int, default=None)

    sub.add_parser("verify", help="Verify the hash chain")

    trace_cmd = sub.add_parser("trace", help="Print one resource's history")
    trace_cmd.add_argument("kind", choices=[k.value for k in ResourceKind])
    trace_cmd.add_argument("resource_id")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = load_settings()
    configure_logging(level=settings.log_level, stream=sys.stderr)

    policy = get_active_config(args.config_path or settings.config_path)
    init_engine_from_url(args.db_url or settings.database_url)
    create_tables()
    register_immutability_listeners()

    gate = AccessGate.from_matrix(
        get_session_factory(), policy.permission_matrix, templates=policy.templates
    )

    try:
        if args.command == "verify":
            result = gate.verify_ledger(OPERATOR)
            print(json.dumps({
                "valid": result.valid,
                "entries": result.entry_count,
                "broken_at": result.broken_at,
            }))
            return 0 if result.valid else 1

        if args.command == "trace":
            payload = {"resource_kind": args.kind, "resource_id": args.resource_id}
        elif args.after_id is not None or args.limit is not None:
            payload = {"after_id": args.after_id, "limit": args.limit}
        else:
            payload = None

        for entry in gate.execute(OPERATOR, Action.READ, ResourceKind.AUDIT_LOG, payload):
            _print_entry(entry)
        return 0
    except ComplianceKernelError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
