"""
Module: member_ledger.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent
    column types, the TrackedBase mixin for audit timestamps and the
    SoftDeleteMixin lifecycle state.
Architecture position: Ledger > DB.  This is the lowest-level import target
    within the package.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Money precision: type_annotation_map maps Python Decimal to
      Numeric(14, 2).  Balances are stored with exactly two decimal places.
      NEVER use float for monetary amounts.
    - Lifecycle: soft-deletable rows move between ACTIVE and DELETED through
      mark_deleted()/restore(); rows are never physically removed by the
      reversal machinery, so a later restore can bring them back.

Audit relevance:
    TrackedBase.created_at, updated_at, created_by_id and updated_by_id form
    the basic audit metadata for every tracked entity.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
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


class RecordState(str, Enum):
    """Lifecycle state of a soft-deletable row.

    Contract: ACTIVE <-> DELETED.  Restoring is a state transition, not a
    reconstruction of data.
    """

    ACTIVE = "active"
    DELETED = "deleted"


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(14, 2) -- fixed two-place money.
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger -- safe for monotonic sequences.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(14, 2),
        datetime: DateTime(timezone=True),
        date: Date,
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
    Abstract base with audit timestamp and actor tracking.

    Contract:
        created_at is set by the database on INSERT; updated_at follows every
        UPDATE.  Actor columns are nullable because scheduled jobs (the
        monthly interest run) act without a human actor.
    """

    __abstract__ = True

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

    created_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


class SoftDeleteMixin:
    """
    Explicit ACTIVE/DELETED lifecycle for rows the reversal engine may remove.

    Contract:
        Queries for "current" rows filter on ``state == RecordState.ACTIVE``.
        mark_deleted() and restore() are the only sanctioned transitions.
    """

    state: Mapped[RecordState] = mapped_column(
        String(10),
        default=RecordState.ACTIVE,
        nullable=False,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_deleted(self) -> bool:
        return self.state == RecordState.DELETED

    def mark_deleted(self, at: datetime) -> None:
        self.state = RecordState.DELETED
        self.deleted_at = at

    def restore(self) -> None:
        self.state = RecordState.ACTIVE
        self.deleted_at = None


# Re-export UUID for convenience
UUID = PyUUID
