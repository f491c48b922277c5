"""
compliance_api -- HTTP surface for the site compliance portal.

Every route resolves the caller from identity headers and goes through
``AccessGate``; no route consults the role matrix or the audit ledger
directly.
"""
