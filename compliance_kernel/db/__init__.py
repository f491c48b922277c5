"""Database layer - engine, base classes, types, and immutability."""

from compliance_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from compliance_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
]
