"""ORM models for the compliance kernel."""

from compliance_kernel.models.audit_entry import AuditEntry
from compliance_kernel.models.site_inspection import SiteInspection

__all__ = [
    "AuditEntry",
    "SiteInspection",
    "import_all_models",
]


def import_all_models() -> None:
    """Import every mapped class so Base.metadata knows all tables."""
    import compliance_kernel.services.sequence_service  # noqa: F401
