"""
ContributionPostingService -- payment-mode rules for contributions.

Responsibility:
    Posts a contribution and applies its cascade explicitly (no persistence
    hooks): savings / net worth, the (user, account) Debt, group credit
    interest and the contribution's payment status.

Architecture position:
    Ledger > Services.  Invoked by the "create contribution" handler.

Rules by payment kind:
    from savings  -- savings balance debited (InsufficientFundsError if it
                     would go negative); net worth unchanged; debt reduced.
    group credit  -- financed as new debt.  amount == balance: the debt
                     grows by interest on the amount.  amount < balance:
                     balance - amount + interest.  Otherwise (or no debt)
                     nothing changes.  Interest becomes an Income row and a
                     Saving row lowering net worth by the interest only.
                     Payment status is always Credited.
    other         -- net worth credited with the amount; debt reduced.

    Debt balances clamp at zero and status follows the balance.  Outside
    group credit, payment status compares the member's total contributions
    for the account with Account.expected_amount.

Failure modes:
    - InvalidAmountError for a non-positive amount.
    - ValidationError for an unknown payment method.
    - InsufficientFundsError.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from member_ledger.config import LedgerSettings, get_active_config
from member_ledger.db.types import ZERO, round_money
from member_ledger.domain.enums import (
    IncomeOrigin,
    PaymentKind,
    PaymentStatus,
    SavingSource,
)
from member_ledger.exceptions import InvalidAmountError
from member_ledger.logging_config import LogContext, get_logger
from member_ledger.models.contribution import Contribution
from member_ledger.models.debt import Debt
from member_ledger.models.income import Income
from member_ledger.models.member import Account, Member
from member_ledger.services.base import BaseService, coerce_amount, coerce_payment_mode
from member_ledger.services.savings_ledger import SavingsLedger

logger = get_logger("services.contribution_posting")


@dataclass(frozen=True)
class ContributionPosting:
    contribution: Contribution
    interest: Decimal
    debt: Debt | None
    income: Income | None


class ContributionPostingService(BaseService):
    """
    Contract:
        post_contribution() runs in one SAVEPOINT: either every row it
        touches changes or none does.
    """

    def __init__(
        self,
        session,
        ledger: SavingsLedger | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session)
        self._ledger = ledger or SavingsLedger(session)
        self._settings = settings or get_active_config()

    def post_contribution(
        self,
        user_id: UUID,
        account_id: UUID,
        amount,
        payment_method,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> ContributionPosting:
        value = coerce_amount(amount)
        if value <= ZERO:
            raise InvalidAmountError(amount, "contribution must be positive")
        mode = coerce_payment_mode(payment_method)
        kind = PaymentKind.for_mode(mode)

        self._load(Member, user_id)
        account = self._load(Account, account_id)

        with LogContext.bind(user_id=user_id, actor_id=actor_id, operation="post_contribution"):
            with self.session.begin_nested():
                contribution = Contribution(
                    user_id=user_id,
                    account_id=account_id,
                    amount=value,
                    payment_method=mode.value,
                    payment_status=PaymentStatus.PENDING,
                    description=description,
                    created_by_id=actor_id,
                )
                self.session.add(contribution)

                # Debt row before the savings balance row
                debt = self._active_debt(user_id, account_id)

                if kind is PaymentKind.FROM_SAVINGS:
                    self._ledger.append(
                        user_id,
                        source=SavingSource.CONTRIBUTION,
                        debit=value,
                        balance_change=-value,
                        payment_method=mode.value,
                        actor_id=actor_id,
                    )

                interest = ZERO
                if debt is not None:
                    interest = self._apply_to_debt(debt, value, kind, actor_id)

                if kind is PaymentKind.OTHER:
                    self._ledger.append(
                        user_id,
                        source=SavingSource.CONTRIBUTION,
                        credit=value,
                        net_worth_change=value,
                        payment_method=mode.value,
                        actor_id=actor_id,
                    )

                income = None
                if interest > ZERO:
                    income = Income(
                        user_id=user_id,
                        account_id=account_id,
                        origin=IncomeOrigin.GROUP_CREDIT_INTEREST,
                        interest_amount=interest,
                        income_amount=ZERO,
                        description="Interest generated from group credit contribution",
                        created_by_id=actor_id,
                    )
                    self.session.add(income)
                    # The interest already sits on the debt; only it leaves net worth
                    self._ledger.append(
                        user_id,
                        source=SavingSource.CONTRIBUTION,
                        debit=interest,
                        net_worth_change=-interest,
                        payment_method=mode.value,
                        description="Group credit interest",
                        actor_id=actor_id,
                    )

                self.session.flush()
                contribution.payment_status = self._payment_status(
                    user_id, account, kind
                )
                self.session.flush()

            logger.info(
                "contribution_posted",
                extra={
                    "contribution_id": str(contribution.id),
                    "account_id": str(account_id),
                    "amount": str(value),
                    "payment_kind": kind.value,
                    "interest": str(interest),
                    "payment_status": PaymentStatus(contribution.payment_status).value,
                    "debt_id": str(debt.id) if debt is not None else None,
                },
            )

        return ContributionPosting(
            contribution=contribution,
            interest=interest,
            debt=debt,
            income=income,
        )

    def _apply_to_debt(
        self, debt: Debt, value: Decimal, kind: PaymentKind, actor_id: UUID | None
    ) -> Decimal:
        """Move the debt for this contribution; returns group credit interest."""
        balance = debt.outstanding_balance
        interest = ZERO
        if kind is PaymentKind.GROUP_CREDIT:
            if value == balance:
                interest = round_money(value * self._settings.credit_interest_rate)
                debt.set_outstanding(balance + interest)
            elif value < balance:
                interest = round_money(value * self._settings.credit_interest_rate)
                debt.set_outstanding(balance - value + interest)
            else:
                return ZERO
        else:
            debt.set_outstanding(balance - value)
        debt.recompute_status()
        debt.updated_by_id = actor_id
        return interest

    def _payment_status(
        self, user_id: UUID, account: Account, kind: PaymentKind
    ) -> PaymentStatus:
        if kind is PaymentKind.GROUP_CREDIT:
            return PaymentStatus.CREDITED
        total = self.session.execute(
            select(func.coalesce(func.sum(Contribution.amount), 0)).where(
                Contribution.user_id == user_id,
                Contribution.account_id == account.id,
            )
        ).scalar_one()
        total = round_money(total)
        if total >= account.expected_amount:
            return PaymentStatus.COMPLETED
        if total > ZERO:
            return PaymentStatus.PARTIALLY_PAID
        return PaymentStatus.PENDING
