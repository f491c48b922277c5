"""
Site inspection lifecycle (``compliance_kernel.domain.inspection``).

Responsibility
--------------
Status vocabulary, the transition policy, and create-payload validation
for site inspections.

Architecture position
---------------------
**Kernel domain layer** -- pure functions and value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``Completed`` and ``Flagged`` are terminal: no transition out of them,
  including to the same status.
* Every other transition is allowed, including skips such as
  ``Scheduled -> Completed``.
* ``site_address``, ``inspection_type`` and ``inspector_id`` are required
  and non-blank; all missing fields are reported together.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from compliance_kernel.exceptions import (
    InvalidFieldError,
    InvalidStatusError,
    InvalidTransitionError,
    MissingFieldsError,
)


class InspectionStatus(str, Enum):
    """Lifecycle: Scheduled -> In Progress -> Completed, Flagged from any non-terminal."""

    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    FLAGGED = "Flagged"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def parse(cls, value: InspectionStatus | str) -> InspectionStatus:
        """Accept a wire value ("In Progress") or a compact name ("InProgress").

        Raises:
            InvalidStatusError: if the value names no status.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise InvalidStatusError(repr(value))
        text = value.strip()
        for status in cls:
            if text == status.value:
                return status
        compact = text.replace(" ", "").replace("_", "").lower()
        for status in cls:
            if compact == status.value.replace(" ", "").lower():
                return status
        raise InvalidStatusError(value)


TERMINAL_STATUSES: frozenset[InspectionStatus] = frozenset(
    {InspectionStatus.COMPLETED, InspectionStatus.FLAGGED}
)

DEFAULT_STATUS = InspectionStatus.SCHEDULED

# Order matters: it is the order fields are reported in a MissingFieldsError.
REQUIRED_FIELDS: tuple[str, ...] = ("site_address", "inspection_type", "inspector_id")


def can_transition(current: InspectionStatus, target: InspectionStatus) -> bool:
    """True unless ``current`` is terminal."""
    return not current.is_terminal


def check_transition(
    inspection_id: str,
    current: InspectionStatus,
    target: InspectionStatus,
) -> None:
    """Raise ``InvalidTransitionError`` if ``current -> target`` is not allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(inspection_id, current.value, target.value)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


@dataclass(frozen=True)
class SiteInspectionDraft:
    """
    A validated create request.

    Contract: constructed through ``from_payload``; every field has already
    passed validation and defaults are applied.
    """

    site_address: str
    inspection_type: str
    inspector_id: str
    findings: tuple[Any, ...] = field(default_factory=tuple)
    status: InspectionStatus = DEFAULT_STATUS
    report_url: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> SiteInspectionDraft:
        """
        Validate a create payload (snake_case keys).

        Raises:
            MissingFieldsError: required fields absent or blank.
            InvalidFieldError: a field has the wrong type.
            InvalidStatusError: status names no known status.
        """
        payload = payload or {}

        missing = tuple(name for name in REQUIRED_FIELDS if _is_blank(payload.get(name)))
        if missing:
            raise MissingFieldsError(missing)

        for name in REQUIRED_FIELDS:
            if not isinstance(payload[name], str):
                raise InvalidFieldError(name, "must be a string")

        findings = payload.get("findings")
        if findings is None:
            findings = ()
        elif not isinstance(findings, (list, tuple)):
            raise InvalidFieldError("findings", "must be a list")

        status = payload.get("status")
        status = DEFAULT_STATUS if _is_blank(status) else InspectionStatus.parse(status)

        report_url = payload.get("report_url")
        if report_url is not None and not isinstance(report_url, str):
            raise InvalidFieldError("report_url", "must be a string")

        return cls(
            site_address=payload["site_address"],
            inspection_type=payload["inspection_type"],
            inspector_id=payload["inspector_id"],
            findings=tuple(findings),
            status=status,
            report_url=report_url or None,
        )
