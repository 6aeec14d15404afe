"""
Module: member_ledger.models.income
Responsibility: Money generated for the group (interest charged on
    shortfalls, group credit and loans, registration fees).
Architecture position: Ledger > Models.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from member_ledger.db.base import TrackedBase, UUIDString
from member_ledger.db.types import ZERO
from member_ledger.domain.enums import IncomeOrigin


class Income(TrackedBase):
    """
    One income record.

    interest_amount is interest charged to a member (already added to their
    debt); income_amount is cash actually received.  A payable shortfall
    records the interest with income_amount 0.
    """

    __tablename__ = "incomes"

    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=True,
    )

    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    origin: Mapped[IncomeOrigin] = mapped_column(String(50), nullable=False)

    interest_amount: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    income_amount: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
