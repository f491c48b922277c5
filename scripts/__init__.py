"""Operator scripts. Run as modules from the repository root, e.g. ``python -m scripts.audit_cli``."""
