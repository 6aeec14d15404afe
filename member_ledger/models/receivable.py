"""
Module: member_ledger.models.receivable
Responsibility: ORM persistence for receivables (incoming payments towards
    an account) and the effect records that make their cascading mutations
    reversible.
Architecture position: Ledger > Models.

Invariants enforced:
    - Receivables are soft-deleted only, and only through
      ReceivableService.safe_delete(), which reverts the effects first.
    - ReceivableEffect rows are appended per posting, numbered by revision
      (1, 2, ...) within a receivable, and restoring a receivable appends
      one more for the rows it re-applied.  The highest revision is the
      active effect.  Once reverted is True, reverting again is a no-op.
    - JSON columns hold UUIDs and Decimals as strings (see domain/effects.py).

Audit relevance:
    An effect row documents exactly what a receivable changed: the previous
    and post collection amounts, the saving rows appended (with running
    totals), the debt touched and its previous balance.  Reversal writes
    who reverted it, when, and which offsetting saving rows it created.
    best_effort marks rows written for receivables posted before effects
    were recorded.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from member_ledger.db.base import SoftDeleteMixin, TrackedBase, UUIDString
from member_ledger.db.types import ZERO


class Receivable(SoftDeleteMixin, TrackedBase):
    """
    A payment event contributing towards an account obligation.

    A negative amount_contributed records a new debt instead of a payment.
    """

    __tablename__ = "receivables"

    __table_args__ = (Index("idx_receivable_user_account", "user_id", "account_id"),)

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

    amount_contributed: Mapped[Decimal] = mapped_column(nullable=False)

    # Sum of the member's active receivables for the account, at posting time
    total_amount_contributed: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    from_savings: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Receivable {self.id} amount={self.amount_contributed} state={self.state}>"


class ReceivableEffect(TrackedBase):
    """Audit/undo record of one receivable posting."""

    __tablename__ = "receivable_effects"

    __table_args__ = (
        UniqueConstraint("receivable_id", "revision", name="uq_effect_revision"),
        Index("idx_effect_receivable", "receivable_id"),
    )

    receivable_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("receivables.id"),
        nullable=False,
    )

    revision: Mapped[int] = mapped_column(nullable=False)

    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # AccountCollection snapshot
    account_collection_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    account_collection_prev_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    # Amount restore puts back
    account_collection_post_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Saving rows appended by the posting
    saving_ids: Mapped[list | None] = mapped_column(JSON, nullable=True)
    saving_snapshots: Mapped[list | None] = mapped_column(JSON, nullable=True)

    # Debt snapshot
    debt_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    debt_prev_outstanding: Mapped[Decimal | None] = mapped_column(nullable=True)
    debt_created_by_receivable: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # Reversal bookkeeping
    reverted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reverted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reverted_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reversal_saving_ids: Mapped[list | None] = mapped_column(JSON, nullable=True)

    best_effort: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ReceivableEffect {self.receivable_id} rev={self.revision} "
            f"reverted={self.reverted}>"
        )
