"""
Module: member_ledger.models.account_collection
Responsibility: Cumulative amount a member has contributed towards an
    account's obligation (the user/account pivot).
Architecture position: Ledger > Models.

Invariants enforced:
    - At most one ACTIVE row per (user_id, account_id); services look the
      row up by that pair under a row lock and create it when absent.
    - The amount may go negative: a negative receivable ("record a debt")
      lowers it below what was actually paid.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from member_ledger.db.base import SoftDeleteMixin, TrackedBase, UUIDString
from member_ledger.db.types import ZERO


class AccountCollection(SoftDeleteMixin, TrackedBase):
    __tablename__ = "account_collections"

    __table_args__ = (Index("idx_collection_user_account", "user_id", "account_id"),)

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    def __repr__(self) -> str:
        return f"<AccountCollection user={self.user_id} account={self.account_id} amount={self.amount}>"
