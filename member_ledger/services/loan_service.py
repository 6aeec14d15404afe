"""
LoanService -- credits loans to members and keeps their loan debt in sync.

Responsibility:
    create_loan() records the loan, its origination interest as Income, a
    Saving row crediting the amount while lowering net worth by the full
    balance owed, and a credited-loan Debt (account_id NULL, Credited).
    update_loan() recomputes the balance after an edit, re-syncs that Debt
    and writes a Saving row for the change in credited amount.

Architecture position:
    Ledger > Services.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from member_ledger.config import LedgerSettings, get_active_config
from member_ledger.db.base import RecordState
from member_ledger.db.types import ZERO, round_money, to_money
from member_ledger.domain.enums import DebtStatus, IncomeOrigin, SavingSource
from member_ledger.exceptions import InvalidAmountError, ValidationError
from member_ledger.logging_config import LogContext, get_logger
from member_ledger.models.debt import Debt
from member_ledger.models.income import Income
from member_ledger.models.loan import Loan
from member_ledger.models.member import Member
from member_ledger.services.base import BaseService, coerce_amount
from member_ledger.services.savings_ledger import SavingsLedger

logger = get_logger("services.loan")


def loan_balance(amount: Decimal, interest_percent: Decimal, apply_interest: bool) -> Decimal:
    """amount x (1 + percent/100) when interest applies, else amount."""
    if not apply_interest:
        return round_money(amount)
    return round_money(amount + amount * interest_percent / 100)


@dataclass(frozen=True)
class LoanPosting:
    loan: Loan
    debt: Debt
    income: Income | None
    credited_delta: Decimal


class LoanService(BaseService):

    def __init__(
        self,
        session,
        ledger: SavingsLedger | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session)
        self._ledger = ledger or SavingsLedger(session)
        self._settings = settings or get_active_config()

    def create_loan(
        self,
        user_id: UUID,
        amount,
        interest_percent=None,
        apply_interest: bool = True,
        due_date: date | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> LoanPosting:
        value = coerce_amount(amount)
        if value <= ZERO:
            raise InvalidAmountError(amount, "loan amount must be positive")
        percent = self._percent(interest_percent)
        self._load(Member, user_id)

        balance = loan_balance(value, percent, apply_interest)
        interest = round_money(balance - value)

        with LogContext.bind(user_id=user_id, actor_id=actor_id, operation="create_loan"):
            with self.session.begin_nested():
                # Lock order: debt, savings balance
                debt = self._sync_loan_debt(
                    user_id, balance, actor_id, self._loan_debt(user_id)
                )

                loan = Loan(
                    user_id=user_id,
                    amount=value,
                    balance=balance,
                    interest_percent=percent,
                    apply_interest=apply_interest,
                    due_date=due_date,
                    debt_status=DebtStatus.CREDITED,
                    description=description,
                    created_by_id=actor_id,
                )
                self.session.add(loan)

                income = None
                if interest > ZERO:
                    income = Income(
                        user_id=user_id,
                        origin=IncomeOrigin.LOAN_INTEREST,
                        interest_amount=interest,
                        income_amount=ZERO,
                        description="Loan origination interest",
                        created_by_id=actor_id,
                    )
                    self.session.add(income)

                self._ledger.append(
                    user_id,
                    source=SavingSource.LOAN,
                    credit=value,
                    net_worth_change=-balance,
                    description="Loan credited",
                    actor_id=actor_id,
                )
                self.session.flush()

            logger.info(
                "loan_created",
                extra={
                    "loan_id": str(loan.id),
                    "amount": str(value),
                    "interest": str(interest),
                    "balance": str(balance),
                    "debt_id": str(debt.id),
                },
            )
        return LoanPosting(loan=loan, debt=debt, income=income, credited_delta=balance)

    def update_loan(
        self,
        loan_id: UUID,
        amount=None,
        interest_percent=None,
        apply_interest: bool | None = None,
        balance=None,
        due_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> LoanPosting:
        """
        Edit a loan.  An explicit ``balance`` wins over the recomputed one.
        """
        # Lock order: debt, loan, savings balance
        user_id = self._load(Loan, loan_id).user_id
        debt = self._loan_debt(user_id)
        loan = self._load(Loan, loan_id, lock=True)

        old_credit = loan_balance(loan.amount, loan.interest_percent, loan.apply_interest)

        new_amount = coerce_amount(amount) if amount is not None else loan.amount
        if new_amount <= ZERO:
            raise InvalidAmountError(amount, "loan amount must be positive")
        new_percent = (
            self._percent(interest_percent)
            if interest_percent is not None
            else loan.interest_percent
        )
        new_apply = loan.apply_interest if apply_interest is None else apply_interest

        new_credit = loan_balance(new_amount, new_percent, new_apply)
        new_balance = coerce_amount(balance) if balance is not None else new_credit
        delta = round_money(new_credit - old_credit)

        with LogContext.bind(user_id=loan.user_id, actor_id=actor_id, operation="update_loan"):
            with self.session.begin_nested():
                loan.amount = new_amount
                loan.interest_percent = new_percent
                loan.apply_interest = new_apply
                loan.balance = new_balance
                if due_date is not None:
                    loan.due_date = due_date
                loan.updated_by_id = actor_id

                debt = self._sync_loan_debt(loan.user_id, new_balance, actor_id, debt)

                if delta != ZERO:
                    self._ledger.append(
                        loan.user_id,
                        source=SavingSource.LOAN,
                        credit=-delta if delta < ZERO else ZERO,
                        debit=delta if delta > ZERO else ZERO,
                        net_worth_change=-delta,
                        description="Loan edited",
                        actor_id=actor_id,
                    )
                self.session.flush()

            logger.info(
                "loan_updated",
                extra={
                    "loan_id": str(loan.id),
                    "balance": str(new_balance),
                    "credited_delta": str(delta),
                    "debt_id": str(debt.id),
                },
            )
        return LoanPosting(loan=loan, debt=debt, income=None, credited_delta=delta)

    def _percent(self, interest_percent) -> Decimal:
        if interest_percent is None:
            return self._settings.default_loan_interest_percent
        try:
            percent = to_money(interest_percent)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid loan interest percent: {interest_percent!r}",
                field="interest_percent",
            ) from exc
        if percent < 0 or percent > 100:
            raise ValidationError(
                f"Loan interest percent must be in [0, 100] (got {interest_percent!r})",
                field="interest_percent",
            )
        return percent

    def _loan_debt(self, user_id: UUID) -> Debt | None:
        """The member's newest credited-loan debt, FOR UPDATE."""
        return self.session.execute(
            select(Debt)
            .where(
                Debt.user_id == user_id,
                Debt.account_id.is_(None),
                Debt.state == RecordState.ACTIVE,
            )
            .order_by(Debt.created_at.desc(), Debt.id.desc())
            .limit(1)
            .with_for_update()
        ).scalar_one_or_none()

    def _sync_loan_debt(
        self, user_id: UUID, balance: Decimal, actor_id: UUID | None, debt: Debt | None
    ) -> Debt:
        """Point ``debt`` at ``balance``, creating the credited-loan debt when None."""
        if debt is None:
            debt = Debt(
                user_id=user_id,
                account_id=None,
                debt_status=DebtStatus.CREDITED,
                created_by_id=actor_id,
            )
            debt.set_outstanding(balance)
            self.session.add(debt)
            self.session.flush()
        else:
            debt.set_outstanding(balance)
            debt.updated_by_id = actor_id
        return debt
