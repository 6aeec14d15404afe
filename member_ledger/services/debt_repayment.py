"""
DebtRepaymentService -- member repays part or all of a debt.

Responsibility:
    Reduces the debt, records the repayment, moves the member's account
    collection (or their latest loan for a credited-loan debt) and writes
    the Saving row.

Architecture position:
    Ledger > Services.

Failure modes:
    - InvalidAmountError for a non-positive amount.
    - RepaymentExceedsBalanceError when the amount is above the outstanding
      balance.  Nothing is written.
    - MissingAccountError for a debt with no account and no loan behind it.
    - InsufficientFundsError when paying from savings.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from member_ledger.db.types import ZERO, clamp_non_negative, round_money
from member_ledger.domain.effects import SavingSnapshot
from member_ledger.domain.enums import DebtStatus, SavingSource
from member_ledger.exceptions import (
    InvalidAmountError,
    MissingAccountError,
    RepaymentExceedsBalanceError,
)
from member_ledger.logging_config import LogContext, get_logger
from member_ledger.models.debt import Debt
from member_ledger.models.loan import Loan
from member_ledger.services.base import BaseService, coerce_amount
from member_ledger.services.savings_ledger import SavingsLedger

logger = get_logger("services.debt_repayment")


@dataclass(frozen=True)
class Repayment:
    debt: Debt
    amount: Decimal
    previous_outstanding: Decimal
    loan: Loan | None
    saving: SavingSnapshot


class DebtRepaymentService(BaseService):

    def __init__(self, session, ledger: SavingsLedger | None = None):
        super().__init__(session)
        self._ledger = ledger or SavingsLedger(session)

    def repay(
        self,
        debt_id: UUID,
        amount,
        from_savings: bool = False,
        actor_id: UUID | None = None,
    ) -> Repayment:
        value = coerce_amount(amount)
        if value <= ZERO:
            raise InvalidAmountError(amount, "repayment must be positive")

        with self.session.begin_nested():
            debt = self._load(Debt, debt_id, lock=True)
            previous = debt.outstanding_balance
            if value > previous:
                raise RepaymentExceedsBalanceError(
                    debt_id=debt.id, amount=value, outstanding_balance=previous
                )

            loan = None
            if debt.is_credited_loan:
                loan = self._latest_loan(debt.user_id)
                if loan is None:
                    raise MissingAccountError(debt_id=debt.id)

            with LogContext.bind(
                user_id=debt.user_id, actor_id=actor_id, operation="repay_debt"
            ):
                debt.set_outstanding(previous - value)
                debt.recompute_status()
                debt.repayment_amount = round_money(debt.repayment_amount + value)
                debt.updated_by_id = actor_id

                if loan is not None:
                    loan.balance = clamp_non_negative(round_money(loan.balance - value))
                    loan.debt_status = (
                        DebtStatus.PENDING if loan.balance > ZERO else DebtStatus.CLEARED
                    )
                    loan.updated_by_id = actor_id
                else:
                    self._adjust_collection(debt.user_id, debt.account_id, value)

                if from_savings:
                    snapshot = self._ledger.append(
                        debt.user_id,
                        source=SavingSource.REPAYMENT,
                        debit=value,
                        balance_change=-value,
                        net_worth_change=value,
                        description="Debt repaid from savings",
                        actor_id=actor_id,
                    )
                else:
                    snapshot = self._ledger.append(
                        debt.user_id,
                        source=SavingSource.REPAYMENT,
                        credit=value,
                        net_worth_change=value,
                        description="Debt repaid",
                        actor_id=actor_id,
                    )
                self.session.flush()

                logger.info(
                    "debt_repaid",
                    extra={
                        "debt_id": str(debt.id),
                        "amount": str(value),
                        "previous_outstanding": str(previous),
                        "outstanding_balance": str(debt.outstanding_balance),
                        "from_savings": from_savings,
                        "loan_id": str(loan.id) if loan is not None else None,
                    },
                )

        return Repayment(
            debt=debt,
            amount=value,
            previous_outstanding=previous,
            loan=loan,
            saving=snapshot,
        )

    def _latest_loan(self, user_id: UUID) -> Loan | None:
        return self.session.execute(
            select(Loan)
            .where(Loan.user_id == user_id)
            .order_by(Loan.created_at.desc(), Loan.id.desc())
            .limit(1)
            .with_for_update()
        ).scalar_one_or_none()
