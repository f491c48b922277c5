"""Kernel exception -> HTTP response mapping.

Every error body has the shape ``{"error": <message>, "success": false}``,
plus ``code`` (and ``fields`` for validation failures) so clients can
branch without parsing messages.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel

from compliance_kernel.exceptions import (
    AuditWriteError,
    ComplianceKernelError,
    ConcurrencyError,
    ForbiddenError,
    MissingFieldsError,
    NotFoundError,
    StorageUnavailableError,
    UnauthenticatedError,
    ValidationError,
)
from compliance_kernel.logging_config import get_logger

logger = get_logger("api.errors")

AUDIT_WRITE_FAILED_MESSAGE = (
    "Operation committed but audit record failed; reconciliation required"
)


class ApiError(Exception):
    """A route-level failure with a fixed client-facing message."""

    def __init__(self, status_code: int, message: str, code: str | None = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        super().__init__(message)


def error_body(message: str, code: str | None = None, **extra) -> dict:
    body = {"error": message, "success": False}
    if code:
        body["code"] = code
    body.update(extra)
    return body


def _status_and_message(exc: ComplianceKernelError) -> tuple[int, str, dict]:
    if isinstance(exc, UnauthenticatedError):
        return 401, "Please log in", {}
    if isinstance(exc, ForbiddenError):
        return 403, "Access denied", {}
    if isinstance(exc, ValidationError):
        fields = [to_camel(name) for name in exc.fields]
        if isinstance(exc, MissingFieldsError):
            message = "Missing required fields: " + ", ".join(fields)
        else:
            message = str(exc)
        return 400, message, {"fields": fields}
    if isinstance(exc, NotFoundError):
        return 404, str(exc), {}
    if isinstance(exc, ConcurrencyError):
        return 409, "The record was modified concurrently; reload and retry", {}
    if isinstance(exc, AuditWriteError):
        return 500, AUDIT_WRITE_FAILED_MESSAGE, {}
    if isinstance(exc, StorageUnavailableError):
        return 500, "Storage unavailable", {}
    return 500, "Internal error", {}


async def kernel_error_handler(request: Request, exc: ComplianceKernelError) -> JSONResponse:
    status_code, message, extra = _status_and_message(exc)
    if status_code >= 500:
        logger.error(
            "request_failed",
            extra={"path": request.url.path, "method": request.method, "status": status_code},
            exc_info=exc,
        )
    return JSONResponse(
        status_code=status_code,
        content=error_body(message, exc.code, **extra),
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            extra={"path": request.url.path, "method": request.method, "status": exc.status_code},
            exc_info=exc.__cause__ or exc,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.code),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are a 400 with the offending field names, like kernel validation."""
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        if loc and loc[0] not in fields:
            fields.append(loc[0])
    message = "Invalid request" + (": " + ", ".join(fields) if fields else "")
    return JSONResponse(
        status_code=400,
        content=error_body(message, "INVALID_REQUEST", fields=fields),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ComplianceKernelError, kernel_error_handler)
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
