"""
Compliance Kernel

A role-gated, audit-logged resource store for site compliance work:
- Closed role/permission matrix
- Site inspections with a guarded status lifecycle
- Append-only, hash-chained audit ledger
- One access gate through which every caller passes
"""

__version__ = "0.1.0"
