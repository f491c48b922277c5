"""
AccessGate -- the single entry point for every read and mutation.

Responsibility:
    Composes RoleAuthority, ResourceStore and AuditLedger.  Every caller
    (HTTP routes, operator scripts) goes through ``execute``; nothing
    outside the kernel talks to the authority or the ledger directly.

Architecture position:
    Kernel > Services -- the kernel's public facade.  Owns transaction
    boundaries: each gate call opens its own short transactions from the
    session factory, so concurrent callers never share a session.

Invariants enforced:
    - Unauthenticated and forbidden calls reach neither the store nor the
      ledger.
    - Every successful Create/Update produces exactly one audit entry,
      appended in its own transaction AFTER the mutation commits and
      BEFORE the caller sees success.
    - Reads, validation failures, misses and lost races are never audited.
    - If the append fails after the mutation committed, the caller gets
      AuditWriteError, never a silent success.

Failure modes:
    - UnauthenticatedError, ForbiddenError (no audit).
    - ValidationError subclasses, InspectionNotFoundError,
      OptimisticLockError from the store (no audit).
    - StorageUnavailableError when the database fails or times out.
    - AuditWriteError (logged CRITICAL) when the post-commit append fails.
"""

from __future__ import annotations

from collections.abc import Callable, Generator, Iterable, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.exc import DBAPIError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from compliance_kernel.db.engine import session_scope
from compliance_kernel.domain.access import Action, ResourceKind, User
from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.dtos import AuditEntryDraft, ComplianceTemplate
from compliance_kernel.domain.inspection import SiteInspectionDraft
from compliance_kernel.domain.permissions import Grant, PermissionMatrix
from compliance_kernel.exceptions import (
    AuditChainBrokenError,
    AuditWriteError,
    ForbiddenError,
    InvalidFieldError,
    MissingFieldsError,
    StorageUnavailableError,
    UnauthenticatedError,
    UnsupportedOperationError,
)
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.services.audit_ledger import AuditLedger
from compliance_kernel.services.resource_store import (
    SiteInspectionStore,
    TemplateCatalog,
)
from compliance_kernel.services.role_authority import RoleAuthority

logger = get_logger("services.access_gate")

MANUAL_SOURCE = "manual"


@dataclass(frozen=True)
class ChainVerification:
    """Outcome of a ledger chain check."""

    valid: bool
    entry_count: int
    broken_at: str | None = None


def _missing(payload: Mapping[str, Any], names: Iterable[str]) -> tuple[str, ...]:
    return tuple(
        name
        for name in names
        if payload.get(name) is None
        or (isinstance(payload.get(name), str) and not payload[name].strip())
    )


def _name(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _optional_int(payload: Mapping[str, Any], name: str, minimum: int) -> int | None:
    value = payload.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldError(name, "must be an integer")
    if value < minimum:
        raise InvalidFieldError(name, f"must be >= {minimum}")
    return value


class AccessGate:
    """
    Authorize, dispatch, persist, audit.

    Usage:
        gate = AccessGate(get_session_factory())
        record = gate.execute(user, Action.CREATE, ResourceKind.SITE_INSPECTION, body)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        authority: RoleAuthority | None = None,
        clock: Clock | None = None,
        templates: TemplateCatalog | Iterable[ComplianceTemplate] | None = None,
    ):
        self._session_factory = session_factory
        self._authority = authority or RoleAuthority()
        self._clock = clock or SystemClock()
        if isinstance(templates, TemplateCatalog):
            self._templates = templates
        else:
            self._templates = TemplateCatalog(templates)

        self._handlers: dict[
            tuple[ResourceKind, Action], Callable[[User, Any], Any]
        ] = {
            (ResourceKind.SITE_INSPECTION, Action.READ): self._read_inspections,
            (ResourceKind.SITE_INSPECTION, Action.CREATE): self._create_inspection,
            (ResourceKind.SITE_INSPECTION, Action.UPDATE): self._update_inspection,
            (ResourceKind.COMPLIANCE_TEMPLATE, Action.READ): self._read_templates,
            (ResourceKind.AUDIT_LOG, Action.READ): self._read_audit_log,
        }

    @classmethod
    def from_matrix(
        cls,
        session_factory: sessionmaker[Session],
        matrix: PermissionMatrix,
        **kwargs: Any,
    ) -> AccessGate:
        return cls(session_factory, authority=RoleAuthority(matrix), **kwargs)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def execute(
        self,
        user: User,
        action: Action,
        resource_kind: ResourceKind,
        payload: Any = None,
    ) -> Any:
        """
        Run one gated operation.

        Payload shapes:
            SiteInspection/Read    None -> list, {"id"} -> one record
            SiteInspection/Create  the create body (snake_case keys)
            SiteInspection/Update  {"id", "status"}
            ComplianceTemplate/Read  ignored
            AuditLog/Read          None -> all, {"after_id", "limit"} -> page,
                                   {"resource_kind", "resource_id"} -> trace
        """
        role = user.role.value if user.role is not None else None

        with LogContext.bind(actor_id=user.id, role=role):
            if not user.is_authenticated:
                self._deny(user, _name(action), _name(resource_kind), "unauthenticated")
                raise UnauthenticatedError(_name(action), _name(resource_kind))
            try:
                action = Action(action)
                resource_kind = ResourceKind(resource_kind)
            except ValueError:
                raise UnsupportedOperationError(
                    _name(action), _name(resource_kind)
                ) from None

            self._authorize(user, action, resource_kind)

            handler = self._handlers.get((resource_kind, action))
            if handler is None:
                raise UnsupportedOperationError(action.value, resource_kind.value)
            return handler(user, payload)

    def record_manual_entry(
        self, actor: User, action: str, user_label: str, details: str
    ) -> Any:
        """
        Append a caller-described entry (e.g. "CONTRACT_SIGNED").

        Any authenticated user may record one; the entry is stored as an
        AuditLog entry with ``details.source == "manual"`` in the same
        ledger and id space as gate-generated entries.  ``actor`` is the
        authenticated caller; ``user_label`` is the person the event names
        and is kept in ``details.user``.

        Raises:
            UnauthenticatedError, MissingFieldsError, StorageUnavailableError.
        """
        role = actor.role.value if actor.role is not None else None
        with LogContext.bind(actor_id=actor.id, role=role):
            if not actor.is_authenticated:
                self._deny(actor, "Create", ResourceKind.AUDIT_LOG.value, "unauthenticated")
                raise UnauthenticatedError("Create", ResourceKind.AUDIT_LOG.value)

            missing = _missing(
                {"action": action, "user": user_label, "details": details},
                ("action", "user", "details"),
            )
            if missing:
                raise MissingFieldsError(missing)

            draft = AuditEntryDraft(
                acting_user=actor,
                action=action,
                resource_kind=ResourceKind.AUDIT_LOG,
                resource_id=None,
                details={"note": details, "user": user_label, "source": MANUAL_SOURCE},
            )
            with self._scope("manual_audit_append") as session:
                return AuditLedger(session, self._clock).append(draft)

    def verify_ledger(self, user: User) -> ChainVerification:
        """Check the hash chain; requires Read on AuditLog."""
        role = user.role.value if user.role is not None else None
        with LogContext.bind(actor_id=user.id, role=role):
            self._authorize(user, Action.READ, ResourceKind.AUDIT_LOG)
            with self._scope("verify_ledger") as session:
                ledger = AuditLedger(session, self._clock)
                count = ledger.count()
                try:
                    ledger.verify_chain()
                except AuditChainBrokenError as exc:
                    return ChainVerification(
                        valid=False, entry_count=count, broken_at=exc.audit_entry_id
                    )
                return ChainVerification(valid=True, entry_count=count)

    def permissions_for(self, user: User) -> frozenset[Grant]:
        """The caller's grants, for hiding controls in the presentation layer."""
        return self._authority.permissions_for(user.role)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def _deny(self, user: User, action: str, kind: str, reason: str) -> None:
        logger.warning(
            "access_denied",
            extra={
                "action": action,
                "resource_kind": kind,
                "reason": reason,
            },
        )

    def _authorize(self, user: User, action: Action, kind: ResourceKind) -> None:
        if not user.is_authenticated:
            self._deny(user, action.value, kind.value, "unauthenticated")
            raise UnauthenticatedError(action.value, kind.value)
        if not self._authority.authorize(user.role, action, kind):
            self._deny(user, action.value, kind.value, "forbidden")
            raise ForbiddenError(user.role.value, action.value, kind.value)
        logger.debug(
            "access_granted",
            extra={"action": action.value, "resource_kind": kind.value},
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def _scope(self, operation: str) -> Generator[Session, None, None]:
        """session_scope() with driver and pool failures reported as StorageUnavailableError."""
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except (DBAPIError, PoolTimeoutError) as exc:
            logger.error(
                "storage_unavailable",
                extra={"operation": operation},
                exc_info=True,
            )
            raise StorageUnavailableError(operation) from exc

    def _audit(
        self,
        user: User,
        action: Action,
        kind: ResourceKind,
        resource_id: str,
        details: dict[str, Any],
    ) -> None:
        draft = AuditEntryDraft(
            acting_user=user,
            action=action.value,
            resource_kind=kind,
            resource_id=resource_id,
            details=details,
        )
        try:
            with self._scope("audit_append") as session:
                AuditLedger(session, self._clock).append(draft)
        except Exception as exc:
            logger.critical(
                "audit_write_failed",
                extra={
                    "action": action.value,
                    "resource_kind": kind.value,
                    "resource_id": resource_id,
                    "details": details,
                },
                exc_info=True,
            )
            raise AuditWriteError(kind.value, resource_id, action.value) from exc

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _read_inspections(self, user: User, payload: Any) -> Any:
        if payload and not isinstance(payload, Mapping):
            raise InvalidFieldError("payload", "must be an object")
        with self._scope("read_inspections") as session:
            store = SiteInspectionStore(session, self._clock)
            if not payload:
                return store.list()
            if "id" not in payload:
                raise MissingFieldsError(("id",))
            with LogContext.bind(resource_id=str(payload["id"])):
                return store.get(payload["id"])

    def _create_inspection(self, user: User, payload: Any) -> Any:
        if payload is not None and not isinstance(payload, Mapping):
            raise InvalidFieldError("payload", "must be an object")
        draft = SiteInspectionDraft.from_payload(payload)

        with self._scope("create_inspection") as session:
            record = SiteInspectionStore(session, self._clock).create(draft, actor=user)

        with LogContext.bind(resource_id=record.id):
            self._audit(
                user,
                Action.CREATE,
                ResourceKind.SITE_INSPECTION,
                record.id,
                {
                    "site_address": record.site_address,
                    "inspection_type": record.inspection_type,
                    "inspector_id": record.inspector_id,
                    "status": record.status.value,
                    "finding_count": len(record.findings),
                },
            )
        return record

    def _update_inspection(self, user: User, payload: Any) -> Any:
        if not isinstance(payload, Mapping):
            raise MissingFieldsError(("id", "status"))
        missing = _missing(payload, ("id", "status"))
        if missing:
            raise MissingFieldsError(missing)

        with LogContext.bind(resource_id=str(payload["id"])):
            with self._scope("update_inspection") as session:
                record, previous = SiteInspectionStore(session, self._clock).update_status(
                    payload["id"], payload["status"], actor=user
                )

            self._audit(
                user,
                Action.UPDATE,
                ResourceKind.SITE_INSPECTION,
                record.id,
                {"from_status": previous.value, "to_status": record.status.value},
            )
        return record

    def _read_templates(self, user: User, payload: Any) -> list[ComplianceTemplate]:
        return self._templates.list()

    def _read_audit_log(self, user: User, payload: Any) -> Any:
        if payload and not isinstance(payload, Mapping):
            raise InvalidFieldError("payload", "must be an object")
        with self._scope("read_audit_log") as session:
            ledger = AuditLedger(session, self._clock)
            if not payload:
                return ledger.list()

            if "resource_kind" in payload or "resource_id" in payload:
                missing = _missing(payload, ("resource_kind", "resource_id"))
                if missing:
                    raise MissingFieldsError(missing)
                try:
                    kind = ResourceKind(payload["resource_kind"])
                except ValueError:
                    raise InvalidFieldError(
                        "resource_kind", "must name a resource kind"
                    ) from None
                return ledger.trace(kind, str(payload["resource_id"]))

            return ledger.list(
                after_id=_optional_int(payload, "after_id", 0),
                limit=_optional_int(payload, "limit", 1),
            )
