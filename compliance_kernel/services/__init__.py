"""Services for the compliance kernel."""

from compliance_kernel.services.access_gate import AccessGate, ChainVerification
from compliance_kernel.services.audit_ledger import AuditLedger
from compliance_kernel.services.resource_store import (
    SiteInspectionStore,
    TemplateCatalog,
)
from compliance_kernel.services.role_authority import RoleAuthority
from compliance_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccessGate",
    "AuditLedger",
    "ChainVerification",
    "RoleAuthority",
    "SequenceService",
    "SiteInspectionStore",
    "TemplateCatalog",
]
