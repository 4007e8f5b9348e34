"""
Module: vending_kernel.db.base
Responsibility: Declarative base class and column types shared by all
    SQLAlchemy ORM models.  Provides the UUID primary key convention, the
    UTC timestamp convention, and the type annotation map.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel; MUST NOT import from models/, selectors/, or outer layers.

Invariants enforced:
    - UUID primary keys stored as String(36) for SQLite/PostgreSQL portability.
    - Timestamps are timezone-aware UTC in Python and naive UTC in the
      database, so range comparisons behave identically on every backend.
    - Decimal maps to Numeric(15, 2); monetary values never travel as float.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Transparently converts between Python UUID objects and their 36-character
    string representation.
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
    Timestamp stored as naive UTC, returned as timezone-aware UTC.

    Naive inputs are assumed to already be UTC.  Aware inputs in any zone
    are converted before binding.
    """

    impl = DateTime(timezone=False)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
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
        - Decimal maps to Numeric(15, 2).
        - datetime maps to UTCDateTime.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(15, 2),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


UUID = PyUUID
