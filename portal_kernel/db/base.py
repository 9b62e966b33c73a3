"""
Module: portal_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/ or outer layers.

Conventions:
    - Reference (NSI) rows are keyed by the upstream identifier, an opaque
      string, never by a locally generated key.  ``ReferenceBase`` provides
      that primary key plus audit timestamps.
    - Portal-owned rows (sync state, users, documents) use a uuid4 key stored
      as String(36) via ``UUIDString`` for cross-database portability.
    - ``JSONType`` is JSONB on PostgreSQL and plain JSON elsewhere.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Upstream identifiers are 1C references (UUID text) in practice; the column
# is wider to tolerate other opaque id formats.
EXTERNAL_ID_LENGTH = 64

JSONType = JSON().with_variant(JSONB(), "postgresql")


class UUIDString(TypeDecorator):
    """UUID stored as String(36); converts transparently on bind/result."""

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


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - datetime maps to DateTime(timezone=True).
        - UUID maps to UUIDString.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
    }


class TimestampedMixin:
    """created_at / updated_at audit timestamps maintained by the database."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ReferenceBase(TimestampedMixin, Base):
    """
    Abstract base for NSI reference tables.

    Contract:
        ``id`` is the stable external identifier delivered by the upstream
        accounting system and is the natural key for every upsert.
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(EXTERNAL_ID_LENGTH),
        primary_key=True,
    )


class PortalBase(TimestampedMixin, Base):
    """Abstract base for portal-owned rows with a uuid4 primary key."""

    __abstract__ = True

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


# Re-export UUID for convenience
UUID = PyUUID
