"""
SavingsLedger -- the only writer of Saving rows.

Responsibility:
    Appends savings-ledger rows for a member while holding that member's
    SavingsBalance row FOR UPDATE, keeps the running balance / net worth in
    step, and reports each append as a SavingSnapshot so posting services
    can hand the exact rows they produced to the effect recorder.

Architecture position:
    Ledger > Services.  Used by every posting service, the interest run
    and the effect reversal engine.

Invariants enforced:
    - Saving rows are never updated; corrections are new rows.
    - seq = last_seq + 1 assigned under the row lock; (user_id, seq) unique.
    - SavingsBalance totals equal the member's latest Saving row.
    - A debit that would leave the savings balance below zero raises
      InsufficientFundsError before anything is written.

Failure modes:
    - InsufficientFundsError (balance would go negative).
    - InvalidAmountError from deposit() for non-positive amounts.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from member_ledger.db.types import ZERO, round_money, to_money
from member_ledger.domain.effects import SavingSnapshot
from member_ledger.domain.enums import SavingSource
from member_ledger.exceptions import InsufficientFundsError, InvalidAmountError
from member_ledger.logging_config import get_logger
from member_ledger.models.saving import Saving, SavingsBalance
from member_ledger.services.base import BaseService, coerce_amount

logger = get_logger("services.savings_ledger")


@dataclass(frozen=True)
class SavingsTotals:
    balance: Decimal
    net_worth: Decimal


class SavingsLedger(BaseService):
    """
    Append-only savings ledger with per-member running totals.

    Non-goals:
        - Does NOT decide how an event affects savings; callers pass the
          credit/debit and the change to balance and net worth.
    """

    def _lock_totals(self, user_id: UUID) -> SavingsBalance:
        totals = self.session.execute(
            select(SavingsBalance)
            .where(SavingsBalance.user_id == user_id)
            .with_for_update()
        ).scalar_one_or_none()
        if totals is None:
            totals = SavingsBalance(
                user_id=user_id,
                balance=ZERO,
                net_worth=ZERO,
                last_seq=0,
            )
            self.session.add(totals)
            self.session.flush()
        return totals

    def current(self, user_id: UUID) -> SavingsTotals:
        """Locked running totals; zero for a member with no history."""
        totals = self._lock_totals(user_id)
        return SavingsTotals(balance=totals.balance, net_worth=totals.net_worth)

    def append(
        self,
        user_id: UUID,
        *,
        source: SavingSource,
        credit: Decimal = ZERO,
        debit: Decimal = ZERO,
        balance_change: Decimal = ZERO,
        net_worth_change: Decimal = ZERO,
        payment_method: str | None = None,
        description: str | None = None,
        reverses_saving_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> SavingSnapshot:
        """
        Write one Saving row and move the running totals.

        Raises:
            InsufficientFundsError: balance_change is negative and the
                resulting balance would be below zero.
        """
        totals = self._lock_totals(user_id)
        previous_balance = totals.balance
        previous_net_worth = totals.net_worth

        new_balance = round_money(previous_balance + to_money(balance_change))
        new_net_worth = round_money(previous_net_worth + to_money(net_worth_change))

        if new_balance < ZERO and to_money(balance_change) < ZERO:
            logger.warning(
                "savings_debit_rejected",
                extra={
                    "user_id": str(user_id),
                    "requested": str(-to_money(balance_change)),
                    "available": str(previous_balance),
                },
            )
            raise InsufficientFundsError(
                user_id=user_id,
                requested=round_money(-to_money(balance_change)),
                available=previous_balance,
            )

        totals.last_seq += 1
        saving = Saving(
            user_id=user_id,
            seq=totals.last_seq,
            credit_amount=round_money(credit),
            debit_amount=round_money(debit),
            balance=new_balance,
            net_worth=new_net_worth,
            source=source,
            payment_method=payment_method,
            description=description,
            reverses_saving_id=reverses_saving_id,
            created_by_id=actor_id,
        )
        self.session.add(saving)
        totals.balance = new_balance
        totals.net_worth = new_net_worth
        self.session.flush()

        logger.debug(
            "saving_appended",
            extra={
                "user_id": str(user_id),
                "saving_id": str(saving.id),
                "seq": saving.seq,
                "source": SavingSource(source).value,
                "balance": str(new_balance),
                "net_worth": str(new_net_worth),
            },
        )

        return SavingSnapshot(
            saving_id=saving.id,
            credit_amount=saving.credit_amount,
            debit_amount=saving.debit_amount,
            previous_balance=previous_balance,
            previous_net_worth=previous_net_worth,
            balance=new_balance,
            net_worth=new_net_worth,
        )

    def deposit(
        self,
        user_id: UUID,
        amount,
        payment_method: str | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> SavingSnapshot:
        """Member deposit: balance and net worth both rise by ``amount``."""
        value = coerce_amount(amount)
        if value <= ZERO:
            raise InvalidAmountError(amount, "deposit must be positive")
        snapshot = self.append(
            user_id,
            source=SavingSource.DEPOSIT,
            credit=value,
            balance_change=value,
            net_worth_change=value,
            payment_method=payment_method,
            description=description,
            actor_id=actor_id,
        )
        logger.info(
            "savings_deposited",
            extra={
                "user_id": str(user_id),
                "amount": str(value),
                "saving_id": str(snapshot.saving_id),
            },
        )
        return snapshot

    def recent_saving_ids(self, user_id: UUID, limit: int) -> list[UUID]:
        """Ids of the member's ``limit`` most recent Saving rows, newest first."""
        return list(
            self.session.execute(
                select(Saving.id)
                .where(Saving.user_id == user_id)
                .order_by(Saving.seq.desc())
                .limit(limit)
            ).scalars()
        )
