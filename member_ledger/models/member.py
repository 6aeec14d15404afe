"""
Module: member_ledger.models.member
Responsibility: Members of the group and the accounts (obligations) they
    contribute towards.
Architecture position: Ledger > Models.  May import from db/ and domain/enums.

Invariants enforced:
    - Account.expected_amount is the per-member obligation used to decide a
      contribution's payment status (Completed / Partially Paid).
"""

from decimal import Decimal

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from member_ledger.db.base import TrackedBase
from member_ledger.domain.enums import FrequencyType, MemberStatus


class Member(TrackedBase):
    """A member of the group (the ``users`` table)."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    member_status: Mapped[MemberStatus] = mapped_column(
        String(20),
        default=MemberStatus.ACTIVE,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Member {self.name}>"


class Account(TrackedBase):
    """
    A collection account members owe towards (monthly dues, welfare ...).

    expected_amount is what each member is expected to contribute.
    """

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    expected_amount: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)

    frequency_type: Mapped[FrequencyType] = mapped_column(
        String(20),
        default=FrequencyType.RECURRING,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<Account {self.name}>"
