"""
ReceivablePostingService -- applies a receivable's cascading mutations.

Responsibility:
    Posts one receivable for a member against an account: adjusts the
    (user, account) Debt and AccountCollection, appends the Saving row, and
    reports exactly what changed as AppliedReceivableEffects so the effect
    recorder stores real previous values instead of re-reading them.

Architecture position:
    Ledger > Services.  Called by ReceivableService.create_receivable(),
    which records the effect in the same SAVEPOINT.

Rules:
    Negative amount ("record a debt"):
        |amount| is added to the Debt (created when absent, with provenance
        pointing at this receivable), the AccountCollection moves by the
        negative amount, and a Saving row debits |amount| from net worth
        while leaving the savings balance alone.
    Positive amount (payment):
        A Debt must exist (MissingDebtError).  Without from_savings the
        amount may not exceed the outstanding balance
        (DebtOverpaymentError, raised before any write).  The collection
        grows, the debt shrinks (clamped at 0, status recomputed), and the
        Saving row either debits the savings balance (from_savings, net
        worth unchanged) or credits net worth.

Failure modes:
    - InvalidAmountError for a zero amount.
    - EntityNotFoundError for an unknown member or account.
    - MissingDebtError, DebtOverpaymentError, InsufficientFundsError.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select

from member_ledger.db.base import RecordState
from member_ledger.db.types import ZERO, round_money
from member_ledger.domain.effects import AppliedReceivableEffects, SavingSnapshot
from member_ledger.domain.enums import DebtStatus, PaymentMode, SavingSource
from member_ledger.exceptions import (
    DebtOverpaymentError,
    InvalidAmountError,
    MissingDebtError,
)
from member_ledger.logging_config import LogContext, get_logger
from member_ledger.models.debt import Debt
from member_ledger.models.member import Account, Member
from member_ledger.models.receivable import Receivable, ReceivableEffect
from member_ledger.services.base import BaseService, coerce_amount, coerce_payment_mode
from member_ledger.services.savings_ledger import SavingsLedger

logger = get_logger("services.receivable_posting")


@dataclass(frozen=True)
class ReceivablePosting:
    """Result of posting a receivable.  effect is set once it is recorded."""

    receivable: Receivable
    applied: AppliedReceivableEffects
    effect: ReceivableEffect | None = None


class ReceivablePostingService(BaseService):

    def __init__(self, session, ledger: SavingsLedger | None = None):
        super().__init__(session)
        self._ledger = ledger or SavingsLedger(session)

    def post_receivable(
        self,
        user_id: UUID,
        account_id: UUID,
        amount,
        from_savings: bool = False,
        payment_method: PaymentMode | str | None = None,
        actor_id: UUID | None = None,
    ) -> ReceivablePosting:
        value = coerce_amount(amount)
        if value == ZERO:
            raise InvalidAmountError(amount, "receivable amount cannot be zero")

        self._load(Member, user_id)
        self._load(Account, account_id)

        method = coerce_payment_mode(
            payment_method
            or (PaymentMode.SAVINGS if from_savings else PaymentMode.BANK_TRANSFER)
        )

        with LogContext.bind(user_id=user_id, actor_id=actor_id, operation="post_receivable"):
            with self.session.begin_nested():
                if value < ZERO:
                    posting = self._post_debt_recording(
                        user_id, account_id, value, from_savings, method, actor_id
                    )
                else:
                    posting = self._post_payment(
                        user_id, account_id, value, from_savings, method, actor_id
                    )

            logger.info(
                "receivable_posted",
                extra={
                    "receivable_id": str(posting.receivable.id),
                    "account_id": str(account_id),
                    "amount": str(value),
                    "from_savings": from_savings,
                    "debt_id": str(posting.applied.debt_id) if posting.applied.debt_id else None,
                    "debt_created": posting.applied.debt_created,
                    "saving_ids": [str(i) for i in posting.applied.saving_ids],
                },
            )
        return posting

    # =========================================================================
    # Internal Implementation
    # =========================================================================

    def _new_receivable(
        self,
        user_id: UUID,
        account_id: UUID,
        value: Decimal,
        from_savings: bool,
        method: PaymentMode,
        actor_id: UUID | None,
    ) -> Receivable:
        receivable = Receivable(
            id=uuid4(),
            user_id=user_id,
            account_id=account_id,
            amount_contributed=value,
            from_savings=from_savings,
            payment_method=method.value,
            created_by_id=actor_id,
        )
        self.session.add(receivable)
        return receivable

    def _post_debt_recording(
        self,
        user_id: UUID,
        account_id: UUID,
        value: Decimal,
        from_savings: bool,
        method: PaymentMode,
        actor_id: UUID | None,
    ) -> ReceivablePosting:
        positive = -value
        receivable = self._new_receivable(
            user_id, account_id, value, from_savings, method, actor_id
        )

        debt = self._active_debt(user_id, account_id)
        if debt is not None:
            debt_prev: Decimal | None = debt.outstanding_balance
            debt.set_outstanding(debt_prev + positive)
            debt.debt_status = DebtStatus.PENDING
            debt.updated_by_id = actor_id
            debt_created = False
        else:
            debt_prev = None
            debt = Debt(
                user_id=user_id,
                account_id=account_id,
                from_savings=from_savings,
                debt_status=DebtStatus.PENDING,
                created_by_receivable_id=receivable.id,
                created_by_id=actor_id,
            )
            debt.set_outstanding(positive)
            self.session.add(debt)
            debt_created = True

        collection, collection_prev = self._adjust_collection(user_id, account_id, value)

        snapshot = self._ledger.append(
            user_id,
            source=SavingSource.RECEIVABLE,
            debit=positive,
            net_worth_change=-positive,
            payment_method=receivable.payment_method,
            description="Debt recorded from negative receivable",
            actor_id=actor_id,
        )

        self._finish(receivable)
        return ReceivablePosting(
            receivable=receivable,
            applied=AppliedReceivableEffects(
                account_collection_id=collection.id,
                account_collection_prev_amount=collection_prev,
                account_collection_post_amount=collection.amount,
                debt_id=debt.id,
                debt_prev_outstanding=debt_prev,
                debt_created=debt_created,
                saving_snapshots=(snapshot,),
            ),
        )

    def _post_payment(
        self,
        user_id: UUID,
        account_id: UUID,
        value: Decimal,
        from_savings: bool,
        method: PaymentMode,
        actor_id: UUID | None,
    ) -> ReceivablePosting:
        debt = self._active_debt(user_id, account_id)
        if debt is None:
            raise MissingDebtError(user_id=user_id, account_id=account_id)
        if value > debt.outstanding_balance and not from_savings:
            raise DebtOverpaymentError(
                debt_id=debt.id,
                amount=value,
                outstanding_balance=debt.outstanding_balance,
            )

        receivable = self._new_receivable(
            user_id, account_id, value, from_savings, method, actor_id
        )

        collection, collection_prev = self._adjust_collection(user_id, account_id, value)

        debt_prev = debt.outstanding_balance
        debt.set_outstanding(debt_prev - value)
        debt.recompute_status()
        debt.updated_by_id = actor_id

        snapshot = self._apply_savings(user_id, value, from_savings, receivable, actor_id)

        self._finish(receivable)
        return ReceivablePosting(
            receivable=receivable,
            applied=AppliedReceivableEffects(
                account_collection_id=collection.id,
                account_collection_prev_amount=collection_prev,
                account_collection_post_amount=collection.amount,
                debt_id=debt.id,
                debt_prev_outstanding=debt_prev,
                debt_created=False,
                saving_snapshots=(snapshot,),
            ),
        )

    def _apply_savings(
        self,
        user_id: UUID,
        value: Decimal,
        from_savings: bool,
        receivable: Receivable,
        actor_id: UUID | None,
    ) -> SavingSnapshot:
        if from_savings:
            return self._ledger.append(
                user_id,
                source=SavingSource.RECEIVABLE,
                debit=value,
                balance_change=-value,
                payment_method=receivable.payment_method,
                actor_id=actor_id,
            )
        return self._ledger.append(
            user_id,
            source=SavingSource.RECEIVABLE,
            credit=value,
            net_worth_change=value,
            payment_method=receivable.payment_method,
            actor_id=actor_id,
        )

    def _finish(self, receivable: Receivable) -> None:
        self.session.flush()
        total = self.session.execute(
            select(func.coalesce(func.sum(Receivable.amount_contributed), 0)).where(
                Receivable.user_id == receivable.user_id,
                Receivable.account_id == receivable.account_id,
                Receivable.state == RecordState.ACTIVE,
            )
        ).scalar_one()
        receivable.total_amount_contributed = round_money(total)
        self.session.flush()
