"""
Module: member_ledger.models.contribution
Responsibility: ORM persistence for contributions posted through the
    payment-mode rules (savings, group credit, cash-like modes).
Architecture position: Ledger > Models.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from member_ledger.db.base import TrackedBase, UUIDString
from member_ledger.domain.enums import PaymentMode, PaymentStatus


class Contribution(TrackedBase):
    __tablename__ = "contributions"

    __table_args__ = (Index("idx_contribution_user_account", "user_id", "account_id"),)

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

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    payment_method: Mapped[PaymentMode] = mapped_column(String(50), nullable=False)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
