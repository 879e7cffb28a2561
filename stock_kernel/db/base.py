"""
Module: stock_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent
    column types, and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import from
    models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Decimal precision: Decimal maps to Numeric(38, 9) for prices, costs and
      revenue.  Quantities are integers.
    - Timezone-aware timestamps: UTCDateTime re-attaches UTC on backends that
      drop tzinfo (SQLite), so comparisons never mix naive and aware values.

Failure modes:
    - IntegrityError on duplicate primary key (protected by PK constraint).
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import JSON, BigInteger, DateTime, Numeric, String, func
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
            return PyUUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime that always round-trips as UTC.

    PostgreSQL stores TIMESTAMP WITH TIME ZONE natively; SQLite returns naive
    values, which are assumed to be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to UTCDateTime (always timezone-aware).
        - int maps to BigInteger.
        - dict maps to JSON.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
        dict[str, Any]: JSON,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - created_by_id is required (NOT NULL); every record has a creator.
        - updated_by_id is nullable.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
