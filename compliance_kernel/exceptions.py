"""
Typed Exception Hierarchy for the Compliance Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the access gate can report maps to exactly one class here.
Callers (the HTTP layer, operator scripts) catch by type and read
structured attributes; they never parse message strings.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        gate.execute(user, Action.UPDATE, ResourceKind.SITE_INSPECTION, payload)
    except InvalidTransitionError as e:
        api_response(code=e.code, current=e.current_status, target=e.target_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ComplianceKernelError (base)
    |
    +-- AuthorizationError
    |   +-- UnauthenticatedError
    |   +-- ForbiddenError
    |
    +-- ValidationError
    |   +-- MissingFieldsError
    |   +-- InvalidFieldError
    |   +-- InvalidStatusError
    |   +-- InvalidTransitionError
    |   +-- UnsupportedOperationError
    |
    +-- NotFoundError
    |   +-- InspectionNotFoundError
    |
    +-- StorageUnavailableError
    |
    +-- AuditError
    |   +-- AuditWriteError
    |   +-- AuditChainBrokenError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                     | When Raised
----------------|--------------------------|------------------------------------------
Authorization   | UNAUTHENTICATED          | No role on the calling user
                | FORBIDDEN                | Role lacks the permission
----------------|--------------------------|------------------------------------------
Validation      | MISSING_REQUIRED_FIELDS  | Create payload missing required fields
                | INVALID_FIELD            | Field present with the wrong shape
                | INVALID_STATUS           | Status string is not a known status
                | INVALID_TRANSITION       | Leaving a terminal status
                | UNSUPPORTED_OPERATION    | (kind, action) has no store operation
----------------|--------------------------|------------------------------------------
Not found       | INSPECTION_NOT_FOUND     | Inspection id does not exist
----------------|--------------------------|------------------------------------------
Storage         | STORAGE_UNAVAILABLE      | Database unreachable / timed out
----------------|--------------------------|------------------------------------------
Audit           | AUDIT_WRITE_FAILED       | Mutation committed, audit append failed
                | AUDIT_CHAIN_BROKEN       | Hash chain validation failed
----------------|--------------------------|------------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT | Concurrent modification of the same id
----------------|--------------------------|------------------------------------------
Immutability    | IMMUTABILITY_VIOLATION   | Modifying an append-only / frozen field

===============================================================================
HANDLING PATTERNS
===============================================================================

1. AUTHORIZATION vs VALIDATION are recoverable; report and let the caller
   decide whether to retry.

2. STORAGE errors are logged with full context server-side and reported
   to the caller as a generic failure.

3. AUDIT WRITE errors are escalated, never swallowed:

    except AuditWriteError as e:
        page_operator(resource=e.resource_id, action=e.action)

===============================================================================
"""


class ComplianceKernelError(Exception):
    """
    Base exception for all compliance kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COMPLIANCE_KERNEL_ERROR"


# Authorization exceptions


class AuthorizationError(ComplianceKernelError):
    """Base exception for authorization failures. Never audited."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthenticatedError(AuthorizationError):
    """The caller has no resolved role."""

    code: str = "UNAUTHENTICATED"

    def __init__(self, action: str, resource_kind: str):
        self.action = action
        self.resource_kind = resource_kind
        super().__init__("Please log in")


class ForbiddenError(AuthorizationError):
    """The caller's role does not grant the requested permission."""

    code: str = "FORBIDDEN"

    def __init__(self, role: str, action: str, resource_kind: str):
        self.role = role
        self.action = action
        self.resource_kind = resource_kind
        super().__init__(
            f"Access denied: {role} may not {action} {resource_kind}"
        )


# Validation exceptions


class ValidationError(ComplianceKernelError):
    """Base exception for malformed create/update payloads."""

    code: str = "VALIDATION_ERROR"

    @property
    def fields(self) -> tuple[str, ...]:
        return ()


class MissingFieldsError(ValidationError):
    """One or more required fields are absent or blank."""

    code: str = "MISSING_REQUIRED_FIELDS"

    def __init__(self, missing_fields: tuple[str, ...]):
        self.missing_fields = tuple(missing_fields)
        super().__init__(
            "Missing required fields: " + ", ".join(self.missing_fields)
        )

    @property
    def fields(self) -> tuple[str, ...]:
        return self.missing_fields


class InvalidFieldError(ValidationError):
    """A field is present but has the wrong shape."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid field {field}: {reason}")

    @property
    def fields(self) -> tuple[str, ...]:
        return (self.field,)


class InvalidStatusError(ValidationError):
    """A status value is not one of the known inspection statuses."""

    code: str = "INVALID_STATUS"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid status: {value!r}")

    @property
    def fields(self) -> tuple[str, ...]:
        return ("status",)


class InvalidTransitionError(ValidationError):
    """The requested status transition leaves a terminal status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, inspection_id: str, current_status: str, target_status: str):
        self.inspection_id = inspection_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Invalid transition for inspection {inspection_id}: "
            f"{current_status} is terminal, cannot move to {target_status}"
        )

    @property
    def fields(self) -> tuple[str, ...]:
        return ("status",)


class UnsupportedOperationError(ValidationError):
    """The resource kind has no store operation for the requested action."""

    code: str = "UNSUPPORTED_OPERATION"

    def __init__(self, action: str, resource_kind: str):
        self.action = action
        self.resource_kind = resource_kind
        super().__init__(f"{resource_kind} does not support {action}")

    @property
    def fields(self) -> tuple[str, ...]:
        return ("action",)


# Lookup exceptions


class NotFoundError(ComplianceKernelError):
    """Base exception for lookups that miss."""

    code: str = "NOT_FOUND"


class InspectionNotFoundError(NotFoundError):
    """Site inspection with given ID was not found."""

    code: str = "INSPECTION_NOT_FOUND"

    def __init__(self, inspection_id: str):
        self.inspection_id = inspection_id
        super().__init__(f"Site inspection not found: {inspection_id}")


# Storage exceptions


class StorageUnavailableError(ComplianceKernelError):
    """
    The persistence collaborator failed or timed out.

    The message is deliberately generic; ``operation`` identifies the
    step for server-side logs.
    """

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__("Storage unavailable")


# Audit exceptions


class AuditError(ComplianceKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditWriteError(AuditError):
    """
    The mutation committed but its audit entry could not be appended.

    Operators reconcile using resource_kind / resource_id / action.
    """

    code: str = "AUDIT_WRITE_FAILED"

    def __init__(self, resource_kind: str, resource_id: str | None, action: str):
        self.resource_kind = resource_kind
        self.resource_id = resource_id
        self.action = action
        super().__init__(
            f"Audit append failed after committed {action} on "
            f"{resource_kind} {resource_id}"
        )


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_entry_id: str, expected_hash: str, actual_hash: str):
        self.audit_entry_id = audit_entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_entry_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Concurrency exceptions


class ConcurrencyError(ComplianceKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability exceptions


class ImmutabilityError(ComplianceKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record or field."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
