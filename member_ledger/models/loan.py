"""
Module: member_ledger.models.loan
Responsibility: Loans credited to members.  The amount owed (balance) is
    carried by a credited-loan Debt row (account_id NULL).
Architecture position: Ledger > Models.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from member_ledger.db.base import TrackedBase, UUIDString
from member_ledger.domain.enums import DebtStatus


class Loan(TrackedBase):
    __tablename__ = "loans"

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    # amount plus origination interest, reduced by repayments
    balance: Mapped[Decimal] = mapped_column(nullable=False)

    # Percent, not a fraction (1 = 1%)
    interest_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    apply_interest: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    debt_status: Mapped[DebtStatus] = mapped_column(
        String(20),
        default=DebtStatus.CREDITED,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
