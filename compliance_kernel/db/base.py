"""
Module: compliance_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the UTC-normalising timestamp type, the
    type annotation map, and the TrackedBase mixin for actor/time metadata.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: Every model inherits a uuid4-generated primary key.
    - UTC timestamps: UTCDateTime always hands back timezone-aware UTC values,
      including on SQLite where the driver drops the offset.
    - Actor metadata: TrackedBase provides created_at, updated_at,
      created_by_id, and updated_by_id on every tracked entity.

Failure modes:
    - IntegrityError if a model attempts to INSERT a duplicate UUID.
    - ValueError from UUIDString if a stored id is not a UUID string.
"""

from datetime import datetime, timezone
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(str(value))
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime normalised to UTC on the way in and out.

    SQLite stores DateTime without an offset, so a naive value read back
    is interpreted as UTC.  Naive values bound for storage are likewise
    assumed to be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to UTCDateTime -- always timezone-aware.
        - int maps to BigInteger -- safe for monotonic sequences.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with timestamp and actor tracking.

    Contract:
        Timestamps are stamped by the service layer from the injected
        Clock, never by the database, so tests with a DeterministicClock
        see exactly the times they set.  Actor ids are free-form strings
        issued by the identity provider, not UUIDs.

    Guarantees:
        - created_at and created_by_id are NOT NULL and never change
          (see db/immutability.py).
        - updated_at/updated_by_id are metadata and may change on any update.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    created_by_id: Mapped[str] = mapped_column(String(100), nullable=False)

    updated_by_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
