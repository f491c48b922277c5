"""FastAPI application factory.

Usage (any ASGI server that supports factories):
    uvicorn compliance_api.app:create_app --factory
"""

from uuid import uuid4

from fastapi import FastAPI, Request

from compliance_api.errors import register_exception_handlers
from compliance_api.routers import audit_trail, compliance_templates, permissions, site_inspections
from compliance_config import get_active_config, load_settings
from compliance_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from compliance_kernel.db.immutability import register_immutability_listeners
from compliance_kernel.logging_config import LogContext, configure_logging
from compliance_kernel.services.access_gate import AccessGate


def build_gate() -> AccessGate:
    """Wire the gate from environment settings and the active access policy."""
    settings = load_settings()
    configure_logging(level=settings.log_level)

    policy = get_active_config(settings.config_path)

    init_engine_from_url(settings.database_url)
    create_tables()
    register_immutability_listeners()

    return AccessGate.from_matrix(
        get_session_factory(),
        policy.permission_matrix,
        templates=policy.templates,
    )


def create_app(gate: AccessGate | None = None) -> FastAPI:
    """
    Build the HTTP surface.

    Args:
        gate: A pre-built gate (tests inject one bound to a scratch
            database).  When omitted, one is built from the environment.
    """
    app = FastAPI(
        title="Site Compliance Portal API",
        description="Role-gated, audit-logged site inspection records.",
        version="0.1.0",
    )
    app.state.gate = gate or build_gate()

    register_exception_handlers(app)

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid4())
        with LogContext.bind(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    app.include_router(site_inspections.router)
    app.include_router(audit_trail.router)
    app.include_router(compliance_templates.router)
    app.include_router(permissions.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
