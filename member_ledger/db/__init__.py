"""Database layer - engine, base classes, types and lifecycle mixins."""

from member_ledger.db.base import UUID, Base, SoftDeleteMixin, TrackedBase, UUIDString
from member_ledger.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from member_ledger.db.types import round_money, to_money

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "SoftDeleteMixin",
    "UUIDString",
    "UUID",
    "round_money",
    "to_money",
]
