"""
Module: member_ledger.models.debt
Responsibility: ORM persistence for a member's outstanding liability towards
    an account, or towards the group for a credited loan (account_id NULL).
Architecture position: Ledger > Models.  May import from db/ and domain/.

Invariants enforced:
    - outstanding_balance is never negative: every mutation goes through
      set_outstanding(), which clamps at zero.
    - Status follows the balance (>0 Pending, 0 Cleared) unless a caller
      sets an explicit status such as Credited for loan-origin debts.
    - created_by_receivable_id records provenance: the receivable whose
      posting created the row.  Reversal uses it instead of guessing from
      timestamps.

Failure modes:
    - None at this level; overpayment checks live in the posting services.

Audit relevance:
    last_interest_applied_on stamps the interest period a debt was last
    charged for, making the monthly interest run safe to repeat.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from member_ledger.db.base import SoftDeleteMixin, TrackedBase, UUIDString
from member_ledger.db.types import ZERO, clamp_non_negative, round_money
from member_ledger.domain.enums import DebtStatus


class Debt(SoftDeleteMixin, TrackedBase):
    """
    Outstanding obligation of a member.

    Guarantees:
        - outstanding_balance >= 0 after any call to set_outstanding().
        - account_id NULL means a credited loan.
    """

    __tablename__ = "debts"

    __table_args__ = (
        Index("idx_debt_user_account", "user_id", "account_id"),
        Index("idx_debt_interest_period", "last_interest_applied_on"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    outstanding_balance: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    repayment_amount: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    from_savings: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    debt_status: Mapped[DebtStatus] = mapped_column(
        String(20),
        default=DebtStatus.PENDING,
        nullable=False,
    )

    last_interest_applied_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Receivable whose posting created this row (no FK: receivables also
    # point at debts through their effects)
    created_by_receivable_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Debt {self.id} user={self.user_id} balance={self.outstanding_balance}>"

    @property
    def is_credited_loan(self) -> bool:
        return self.account_id is None

    def set_outstanding(self, value: Decimal) -> Decimal:
        """Store ``value`` rounded and clamped at zero; returns the stored value."""
        self.outstanding_balance = clamp_non_negative(round_money(value))
        return self.outstanding_balance

    def recompute_status(self) -> None:
        self.debt_status = (
            DebtStatus.PENDING if self.outstanding_balance > ZERO else DebtStatus.CLEARED
        )
