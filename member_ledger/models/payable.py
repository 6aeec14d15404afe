"""
Module: member_ledger.models.payable
Responsibility: A payout from an account; members who have not collected
    enough towards it are charged the shortfall plus interest.
Architecture position: Ledger > Models.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from member_ledger.db.base import TrackedBase, UUIDString


class Payable(TrackedBase):
    __tablename__ = "payables"

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    # Sum of the amounts due from every member
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    from_savings: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
