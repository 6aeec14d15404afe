"""
ReceivablePostingService tests.

Tests cover:
- Positive receivables: collection grows, debt shrinks, net worth credited
- From savings: savings debited, overpayment allowed and clamped
- Negative receivables: debt recorded (created with provenance or grown)
- Error paths: zero amount, missing debt, overpayment, insufficient savings
- AppliedReceivableEffects reports the exact previous values
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from member_ledger.domain.enums import DebtStatus, PaymentMode
from member_ledger.exceptions import (
    DebtOverpaymentError,
    EntityNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    MissingDebtError,
)
from member_ledger.models import AccountCollection, Debt, Receivable
from member_ledger.services.receivable_posting import ReceivablePostingService
from member_ledger.services.savings_ledger import SavingsLedger


@pytest.fixture
def service(session):
    return ReceivablePostingService(session)


def _collection(session, member, account):
    return session.execute(
        select(AccountCollection).where(
            AccountCollection.user_id == member.id,
            AccountCollection.account_id == account.id,
        )
    ).scalar_one_or_none()


# =========================================================================
# Payments
# =========================================================================


class TestPayment:

    def test_payment_against_debt(self, session, service, member, account, make_debt, actor_id):
        debt = make_debt(member, account, balance="1000.00")

        posting = service.post_receivable(member.id, account.id, "400.00", actor_id=actor_id)

        assert debt.outstanding_balance == Decimal("600.00")
        assert debt.debt_status == DebtStatus.PENDING
        assert _collection(session, member, account).amount == Decimal("400.00")
        totals = SavingsLedger(session).current(member.id)
        assert totals.net_worth == Decimal("400.00")
        assert totals.balance == Decimal("0.00")
        assert posting.receivable.payment_method == PaymentMode.BANK_TRANSFER.value
        assert posting.receivable.total_amount_contributed == Decimal("400.00")
        assert posting.receivable.created_by_id == actor_id

        applied = posting.applied
        assert applied.debt_id == debt.id
        assert applied.debt_prev_outstanding == Decimal("1000.00")
        assert applied.debt_created is False
        assert applied.account_collection_prev_amount is None
        assert applied.account_collection_post_amount == Decimal("400.00")
        assert len(applied.saving_snapshots) == 1
        assert applied.saving_snapshots[0].net_worth_delta == Decimal("400.00")

    def test_second_payment_reports_previous_collection(
        self, session, service, member, account, make_debt
    ):
        make_debt(member, account, balance="1000.00")
        service.post_receivable(member.id, account.id, "100.00")

        posting = service.post_receivable(member.id, account.id, "250.00")

        assert posting.applied.account_collection_prev_amount == Decimal("100.00")
        assert posting.applied.account_collection_post_amount == Decimal("350.00")
        assert posting.receivable.total_amount_contributed == Decimal("350.00")

    def test_full_payment_clears_debt(self, service, member, account, make_debt):
        debt = make_debt(member, account, balance="250.00")

        service.post_receivable(member.id, account.id, "250.00")

        assert debt.outstanding_balance == Decimal("0.00")
        assert debt.debt_status == DebtStatus.CLEARED

    def test_from_savings_debits_balance(
        self, session, service, member, account, make_debt, deposit
    ):
        deposit(member, "500.00")
        make_debt(member, account, balance="300.00")

        posting = service.post_receivable(member.id, account.id, "200.00", from_savings=True)

        totals = SavingsLedger(session).current(member.id)
        assert totals.balance == Decimal("300.00")
        assert totals.net_worth == Decimal("500.00")
        assert posting.receivable.payment_method == PaymentMode.SAVINGS.value

    def test_from_savings_may_exceed_debt(
        self, session, service, member, account, make_debt, deposit
    ):
        deposit(member, "500.00")
        debt = make_debt(member, account, balance="100.00")

        service.post_receivable(member.id, account.id, "150.00", from_savings=True)

        assert debt.outstanding_balance == Decimal("0.00")
        assert debt.debt_status == DebtStatus.CLEARED


# =========================================================================
# Negative receivables (record a debt)
# =========================================================================


class TestDebtRecording:

    def test_creates_debt_with_provenance(self, session, service, member, account):
        posting = service.post_receivable(member.id, account.id, "-300.00")

        debt = session.get(Debt, posting.applied.debt_id)
        assert debt.outstanding_balance == Decimal("300.00")
        assert debt.debt_status == DebtStatus.PENDING
        assert debt.created_by_receivable_id == posting.receivable.id
        assert posting.applied.debt_created is True
        assert posting.applied.debt_prev_outstanding is None
        assert _collection(session, member, account).amount == Decimal("-300.00")

        totals = SavingsLedger(session).current(member.id)
        assert totals.net_worth == Decimal("-300.00")
        assert totals.balance == Decimal("0.00")

    def test_grows_existing_debt(self, session, service, member, account, make_debt):
        debt = make_debt(member, account, balance="0.00", status=DebtStatus.CLEARED)

        posting = service.post_receivable(member.id, account.id, "-75.50")

        assert debt.outstanding_balance == Decimal("75.50")
        assert debt.debt_status == DebtStatus.PENDING
        assert debt.created_by_receivable_id is None
        assert posting.applied.debt_created is False
        assert posting.applied.debt_prev_outstanding == Decimal("0.00")


# =========================================================================
# Error paths
# =========================================================================


class TestErrors:

    def test_zero_amount(self, service, member, account):
        with pytest.raises(InvalidAmountError):
            service.post_receivable(member.id, account.id, "0.00")

    def test_missing_debt(self, session, service, member, account):
        with pytest.raises(MissingDebtError) as exc:
            service.post_receivable(member.id, account.id, "10.00")

        assert exc.value.account_id == account.id
        assert session.execute(select(func.count()).select_from(Receivable)).scalar_one() == 0

    def test_overpayment_rejected_before_writes(
        self, session, service, member, account, make_debt
    ):
        debt = make_debt(member, account, balance="100.00")

        with pytest.raises(DebtOverpaymentError) as exc:
            service.post_receivable(member.id, account.id, "100.01")

        assert exc.value.outstanding_balance == Decimal("100.00")
        assert debt.outstanding_balance == Decimal("100.00")
        assert _collection(session, member, account) is None

    def test_insufficient_savings_rolls_back(
        self, session, service, member, account, make_debt, deposit
    ):
        deposit(member, "20.00")
        debt = make_debt(member, account, balance="100.00")

        with pytest.raises(InsufficientFundsError):
            service.post_receivable(member.id, account.id, "50.00", from_savings=True)

        session.refresh(debt)
        assert debt.outstanding_balance == Decimal("100.00")
        assert _collection(session, member, account) is None
        assert session.execute(select(func.count()).select_from(Receivable)).scalar_one() == 0

    def test_unknown_account(self, service, member):
        with pytest.raises(EntityNotFoundError):
            service.post_receivable(member.id, uuid4(), "10.00")
