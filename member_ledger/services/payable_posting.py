"""
PayablePostingService -- charges members who collected less than a payout.

Responsibility:
    Posts a Payable against an account.  For each member the shortfall is
    what they owe minus what their AccountCollection holds.  A shortfall
    is either taken from the member's savings or turned into debt plus
    interest.

Architecture position:
    Ledger > Services.  Invoked by the "create payable" handler.

Rules per member:
    shortfall <= 0           -- nothing written.
    from savings             -- savings balance debited by the shortfall
                                (InsufficientFundsError if it would go
                                negative); the collection grows by it.
    otherwise                -- interest = round(shortfall x rate); the
                                Debt grows by shortfall + interest (created
                                Pending when absent); Income "Payable
                                Interest" with income_amount 0; a Saving row
                                debits shortfall + interest and lowers net
                                worth by the interest only.

Example:
    owed 1000, collected 500, rate 0.01 -> shortfall 500, interest 5.00,
    debt 505.00, Income interest_amount 5.00.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from member_ledger.config import LedgerSettings, get_active_config
from member_ledger.db.types import ZERO, round_money
from member_ledger.domain.enums import DebtStatus, IncomeOrigin, SavingSource
from member_ledger.exceptions import InvalidAmountError, ValidationError
from member_ledger.logging_config import LogContext, get_logger
from member_ledger.models.debt import Debt
from member_ledger.models.income import Income
from member_ledger.models.member import Account, Member
from member_ledger.models.payable import Payable
from member_ledger.services.base import BaseService, coerce_amount
from member_ledger.services.savings_ledger import SavingsLedger

logger = get_logger("services.payable_posting")


@dataclass(frozen=True)
class PayableMember:
    user_id: UUID
    amount_due: Decimal
    from_savings: bool = False


@dataclass(frozen=True)
class PayableMemberOutcome:
    user_id: UUID
    shortfall: Decimal
    interest: Decimal
    debt_id: UUID | None = None
    income_id: UUID | None = None
    saving_id: UUID | None = None


@dataclass(frozen=True)
class PayablePosting:
    payable: Payable
    outcomes: tuple[PayableMemberOutcome, ...]

    @property
    def total_interest(self) -> Decimal:
        return round_money(sum((o.interest for o in self.outcomes), ZERO))


class PayablePostingService(BaseService):

    def __init__(
        self,
        session,
        ledger: SavingsLedger | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session)
        self._ledger = ledger or SavingsLedger(session)
        self._settings = settings or get_active_config()

    def post_payable(
        self,
        account_id: UUID,
        members: Sequence[PayableMember],
        from_savings: bool = False,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> PayablePosting:
        """
        Post a payable for ``members``; the whole payable is one SAVEPOINT.

        ``from_savings`` applies to every member; a member's own flag can
        also request it.
        """
        if not members:
            raise ValidationError("A payable needs at least one member", field="members")
        for member in members:
            if coerce_amount(member.amount_due) <= ZERO:
                raise InvalidAmountError(member.amount_due, "amount due must be positive")

        self._load(Account, account_id)

        with LogContext.bind(actor_id=actor_id, operation="post_payable"):
            with self.session.begin_nested():
                payable = Payable(
                    account_id=account_id,
                    total_amount=round_money(
                        sum((round_money(m.amount_due) for m in members), ZERO)
                    ),
                    from_savings=from_savings,
                    description=description,
                    created_by_id=actor_id,
                )
                self.session.add(payable)

                outcomes = tuple(
                    self._post_member(
                        account_id,
                        member,
                        from_savings or member.from_savings,
                        actor_id,
                    )
                    for member in members
                )
                self.session.flush()

            logger.info(
                "payable_posted",
                extra={
                    "payable_id": str(payable.id),
                    "account_id": str(account_id),
                    "total_amount": str(payable.total_amount),
                    "members": len(outcomes),
                    "members_short": sum(1 for o in outcomes if o.shortfall > ZERO),
                },
            )

        return PayablePosting(payable=payable, outcomes=outcomes)

    def _post_member(
        self,
        account_id: UUID,
        member: PayableMember,
        from_savings: bool,
        actor_id: UUID | None,
    ) -> PayableMemberOutcome:
        self._load(Member, member.user_id)
        amount_due = round_money(member.amount_due)

        # Lock order: debt, collection, savings balance
        debt = self._active_debt(member.user_id, account_id)
        collection = self._active_collection(member.user_id, account_id)
        collected = collection.amount if collection is not None else ZERO
        shortfall = round_money(amount_due - collected)

        if shortfall <= ZERO:
            return PayableMemberOutcome(user_id=member.user_id, shortfall=ZERO, interest=ZERO)

        if from_savings:
            self._adjust_collection(member.user_id, account_id, shortfall)
            snapshot = self._ledger.append(
                member.user_id,
                source=SavingSource.PAYABLE,
                debit=shortfall,
                balance_change=-shortfall,
                description="Payable shortfall paid from savings",
                actor_id=actor_id,
            )
            logger.info(
                "payable_shortfall_from_savings",
                extra={"user_id": str(member.user_id), "shortfall": str(shortfall)},
            )
            return PayableMemberOutcome(
                user_id=member.user_id,
                shortfall=shortfall,
                interest=ZERO,
                saving_id=snapshot.saving_id,
            )

        interest = round_money(shortfall * self._settings.payable_interest_rate)

        if debt is None:
            debt = Debt(
                user_id=member.user_id,
                account_id=account_id,
                debt_status=DebtStatus.PENDING,
                created_by_id=actor_id,
            )
            debt.set_outstanding(shortfall + interest)
            self.session.add(debt)
        else:
            debt.set_outstanding(debt.outstanding_balance + shortfall + interest)
            debt.debt_status = DebtStatus.PENDING
            debt.updated_by_id = actor_id

        income = None
        if interest > ZERO:
            income = Income(
                user_id=member.user_id,
                account_id=account_id,
                origin=IncomeOrigin.PAYABLE_INTEREST,
                interest_amount=interest,
                income_amount=ZERO,
                description="Interest on payable shortfall",
                created_by_id=actor_id,
            )
            self.session.add(income)

        snapshot = self._ledger.append(
            member.user_id,
            source=SavingSource.PAYABLE,
            debit=shortfall + interest,
            net_worth_change=-interest,
            description="Payable shortfall charged as debt",
            actor_id=actor_id,
        )
        self.session.flush()

        logger.info(
            "payable_shortfall_charged",
            extra={
                "user_id": str(member.user_id),
                "shortfall": str(shortfall),
                "interest": str(interest),
                "debt_id": str(debt.id),
                "outstanding_balance": str(debt.outstanding_balance),
            },
        )
        return PayableMemberOutcome(
            user_id=member.user_id,
            shortfall=shortfall,
            interest=interest,
            debt_id=debt.id,
            income_id=income.id if income is not None else None,
            saving_id=snapshot.saving_id,
        )
