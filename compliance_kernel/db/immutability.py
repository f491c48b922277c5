"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

Compliance reviewers rely on two things never changing after the fact: the
audit ledger, and the identity of each inspection (its id, when it was
created, and by whom).  Corrections are new ledger entries, never edits.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (PostgreSQL triggers)
    - Catches raw SQL, bulk UPDATE statements, direct psql access

Both layers enforce the SAME rules.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|-------------------------------------------------------------
AuditEntry      | ALWAYS immutable: no UPDATE, no DELETE
SiteInspection  | id, created_at, created_by_id, insertion_seq frozen; no DELETE

===============================================================================
USAGE
===============================================================================

    from compliance_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent; called by app startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect

from compliance_kernel.exceptions import ImmutabilityViolationError
from compliance_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

SITE_INSPECTION_FROZEN_FIELDS = frozenset(
    {"id", "created_at", "created_by_id", "insertion_seq"}
)


def _blocked(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_audit_entry_immutability(mapper, connection, target):
    raise _blocked(
        "AuditEntry",
        target.seq,
        "UPDATE",
        "Audit entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    raise _blocked(
        "AuditEntry",
        target.seq,
        "DELETE",
        "Audit entries cannot be deleted",
    )


def _check_site_inspection_immutability(mapper, connection, target):
    """Block changes to identity fields; status and findings stay mutable."""
    insp = inspect(target)
    for key in SITE_INSPECTION_FROZEN_FIELDS:
        if insp.attrs[key].history.deleted:
            raise _blocked(
                "SiteInspection",
                target.id,
                "UPDATE",
                f"Cannot modify field '{key}' on a site inspection",
                field=key,
            )


def _check_site_inspection_delete(mapper, connection, target):
    raise _blocked(
        "SiteInspection",
        target.id,
        "DELETE",
        "Site inspections cannot be deleted",
    )


def _listeners():
    from compliance_kernel.models.audit_entry import AuditEntry
    from compliance_kernel.models.site_inspection import SiteInspection

    return [
        (AuditEntry, "before_update", _check_audit_entry_immutability),
        (AuditEntry, "before_delete", _check_audit_entry_delete),
        (SiteInspection, "before_update", _check_site_inspection_immutability),
        (SiteInspection, "before_delete", _check_site_inspection_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once: a listener already registered is skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
