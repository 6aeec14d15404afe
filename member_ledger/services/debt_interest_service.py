"""
DebtInterestService -- monthly interest run over outstanding debts.

Contract:
    apply_monthly_interest() charges one period of simple interest on every
    active debt with a positive balance that has not been charged for the
    current period, and returns InterestRunResult(processed, errors,
    total_interest).

Architecture position:
    Ledger > Services.  Invoked by scripts/apply_monthly_interest.py on the
    first day of each month; the caller owns the transaction.

Invariants enforced:
    - new_balance = round(balance + round(balance x rate)) >= balance.
    - Debts with a zero balance are never selected.
    - SAVEPOINT per debt: one failing debt is logged at ERROR and counted
      in ``errors``; its siblings are still charged.
    - The whole run is itself one SAVEPOINT.  Anything raised outside the
      per-debt path (selecting the batch, for example) is logged at
      CRITICAL, rolls the run back and is re-raised.
    - Each charged debt is stamped with the period (first of the month from
      the injected Clock); a second run in the same month finds nothing.
    - The rate is a fraction in [0, 1].  Setting an invalid rate raises
      InvalidInterestRateError and keeps the previous rate.

Audit relevance:
    Every application is logged on the ``member_ledger.interest`` channel
    with the debt, member, account, previous balance, interest, new
    balance, percentage increase, period and timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from member_ledger.config import LedgerSettings, get_active_config
from member_ledger.db.base import RecordState
from member_ledger.db.types import ZERO, round_money
from member_ledger.domain.clock import Clock, SystemClock
from member_ledger.domain.enums import SavingSource
from member_ledger.domain.interest import (
    InterestApplication,
    calculate_interest,
    interest_period,
    validate_rate,
)
from member_ledger.logging_config import get_logger
from member_ledger.models.debt import Debt
from member_ledger.services.base import BaseService
from member_ledger.services.savings_ledger import SavingsLedger

logger = get_logger("services.debt_interest")
interest_logger = get_logger("interest")


@dataclass(frozen=True)
class InterestRunResult:
    processed: int
    errors: int
    total_interest: Decimal

    def as_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "errors": self.errors,
            "total_interest": self.total_interest,
        }


class DebtInterestService(BaseService):
    """
    Monthly interest engine.

    Non-goals:
        - Does NOT schedule itself; an external scheduler runs the command.
        - Does NOT commit; the caller's session_scope() does.
    """

    def __init__(
        self,
        session: Session,
        rate=None,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        ledger: SavingsLedger | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ledger = ledger or SavingsLedger(session)
        if rate is None:
            rate = (settings or get_active_config()).monthly_interest_rate
        self._rate = validate_rate(rate)

    @property
    def interest_rate(self) -> Decimal:
        return self._rate

    @interest_rate.setter
    def interest_rate(self, rate) -> None:
        # validate_rate raises before the assignment, keeping the old rate
        self._rate = validate_rate(rate)

    def apply_monthly_interest(self) -> InterestRunResult:
        period = interest_period(self._clock.today())
        processed = 0
        errors = 0
        total_interest = ZERO

        try:
            with self.session.begin_nested():
                debts = self._due_debts(period)
                logger.info(
                    "interest_run_started",
                    extra={
                        "rate": self._rate,
                        "interest_period": period,
                        "candidates": len(debts),
                    },
                )

                for debt in debts:
                    debt_id = debt.id
                    savepoint = self.session.begin_nested()
                    try:
                        application = self._apply_to_debt(debt, period)
                        savepoint.commit()
                    except Exception:
                        savepoint.rollback()
                        errors += 1
                        interest_logger.error(
                            "interest_application_failed",
                            extra={"debt_id": str(debt_id), "interest_period": period},
                            exc_info=True,
                        )
                        continue

                    processed += 1
                    total_interest += application.interest
        except Exception:
            logger.critical(
                "interest_run_failed",
                extra={"interest_period": period, "processed": processed, "errors": errors},
                exc_info=True,
            )
            raise

        result = InterestRunResult(
            processed=processed,
            errors=errors,
            total_interest=round_money(total_interest),
        )
        logger.info(
            "interest_run_completed",
            extra={"interest_period": period, **result.as_dict()},
        )
        return result

    def _due_debts(self, period: date) -> list[Debt]:
        return list(
            self.session.execute(
                select(Debt)
                .where(
                    Debt.state == RecordState.ACTIVE,
                    Debt.outstanding_balance > 0,
                    or_(
                        Debt.last_interest_applied_on.is_(None),
                        Debt.last_interest_applied_on < period,
                    ),
                )
                .order_by(Debt.created_at, Debt.id)
                .with_for_update()
            ).scalars()
        )

    def _apply_to_debt(self, debt: Debt, period: date) -> InterestApplication:
        application = calculate_interest(debt.outstanding_balance, self._rate)
        debt.set_outstanding(application.new_balance)
        debt.last_interest_applied_on = period

        if application.interest > ZERO:
            # Lock order: debt (held), collection, savings balance
            if debt.account_id is not None:
                self._charge_collection(debt, application.interest)
            self._ledger.append(
                debt.user_id,
                source=SavingSource.INTEREST,
                debit=application.interest,
                net_worth_change=-application.interest,
                description="Monthly debt interest",
            )
        self.session.flush()

        interest_logger.info(
            "interest_applied",
            extra={
                "debt_id": str(debt.id),
                "user_id": str(debt.user_id),
                "account_id": str(debt.account_id) if debt.account_id else None,
                "previous_balance": application.previous_balance,
                "interest": application.interest,
                "new_balance": application.new_balance,
                "percentage_increase": application.percentage_increase,
                "interest_period": period,
                "timestamp": self._clock.now(),
            },
        )
        return application

    def _charge_collection(self, debt: Debt, interest: Decimal) -> None:
        collection = self._active_collection(debt.user_id, debt.account_id)
        if collection is None:
            interest_logger.warning(
                "interest_collection_missing",
                extra={
                    "debt_id": str(debt.id),
                    "user_id": str(debt.user_id),
                    "account_id": str(debt.account_id),
                },
            )
            return
        collection.amount = round_money(collection.amount - interest)
