"""
Module: member_ledger.models.saving
Responsibility: ORM persistence for the append-only savings ledger and the
    per-member running totals that guard it.
Architecture position: Ledger > Models.  May import from db/ and domain/.

Invariants enforced:
    - Saving rows are append-only.  UPDATE and DELETE are blocked by the
      listeners in db/immutability.py (ImmutabilityViolationError).
    - (user_id, seq) is unique.  seq is assigned from SavingsBalance.last_seq
      while that row is locked FOR UPDATE, so concurrent postings for the
      same member serialize instead of reading a stale "latest" row.
    - SavingsBalance.balance / net_worth always equal the balance / net_worth
      of the member's highest-seq Saving row.

Audit relevance:
    Every balance-affecting event leaves exactly one Saving row; reversals
    add offsetting rows pointing at the row they undo (reverses_saving_id).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from member_ledger.db.base import TrackedBase, UUIDString
from member_ledger.db.types import ZERO
from member_ledger.domain.enums import SavingSource


class Saving(TrackedBase):
    """One immutable savings-ledger row for a member."""

    __tablename__ = "savings"

    __table_args__ = (
        UniqueConstraint("user_id", "seq", name="uq_saving_user_seq"),
        Index("idx_saving_user", "user_id"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    seq: Mapped[int] = mapped_column(nullable=False)

    credit_amount: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    debit_amount: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    # Point-in-time savings balance after this row
    balance: Mapped[Decimal] = mapped_column(nullable=False)

    # Point-in-time total wealth after this row
    net_worth: Mapped[Decimal] = mapped_column(nullable=False)

    source: Mapped[SavingSource] = mapped_column(String(20), nullable=False)

    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    reverses_saving_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("savings.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Saving {self.user_id}#{self.seq} +{self.credit_amount} "
            f"-{self.debit_amount} bal={self.balance} nw={self.net_worth}>"
        )


class SavingsBalance(TrackedBase):
    """
    Running savings totals for one member.

    Locked FOR UPDATE before every Saving insert for that member.
    """

    __tablename__ = "savings_balances"

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
        unique=True,
    )

    balance: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    net_worth: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    last_seq: Mapped[int] = mapped_column(default=0, nullable=False)
