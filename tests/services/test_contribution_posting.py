"""
ContributionPostingService tests.

Tests cover:
- Other payment modes: net worth credited, debt reduced
- From savings: savings balance debited, net worth unchanged
- Group credit: interest on the financed amount, Income row, Credited status
- Payment status against Account.expected_amount
- Error paths roll back the whole contribution
"""

from dataclasses import replace
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from member_ledger.domain.enums import (
    DebtStatus,
    IncomeOrigin,
    PaymentMode,
    PaymentStatus,
    SavingSource,
)
from member_ledger.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    ValidationError,
)
from member_ledger.models import Contribution, Income, Saving
from member_ledger.services.contribution_posting import ContributionPostingService
from member_ledger.services.savings_ledger import SavingsLedger


@pytest.fixture
def service(session, settings):
    return ContributionPostingService(session, settings=settings)


def _totals(session, member):
    return SavingsLedger(session).current(member.id)


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


# =========================================================================
# Other payment modes
# =========================================================================


class TestOtherModes:

    def test_cash_reduces_debt_and_credits_net_worth(
        self, session, service, member, account, make_debt, actor_id
    ):
        debt = make_debt(member, account, balance="1000.00")

        result = service.post_contribution(
            member.id, account.id, "400.00", PaymentMode.CASH, actor_id=actor_id
        )

        assert result.debt.id == debt.id
        assert debt.outstanding_balance == Decimal("600.00")
        assert debt.debt_status == DebtStatus.PENDING
        assert result.interest == Decimal("0.00")
        assert result.income is None
        totals = _totals(session, member)
        assert totals.balance == Decimal("0.00")
        assert totals.net_worth == Decimal("400.00")
        assert result.contribution.payment_status == PaymentStatus.PARTIALLY_PAID
        assert result.contribution.created_by_id == actor_id

    def test_debt_clamps_at_zero(self, service, member, account, make_debt):
        debt = make_debt(member, account, balance="100.00")

        service.post_contribution(member.id, account.id, "250.00", "Bank Transfer")

        assert debt.outstanding_balance == Decimal("0.00")
        assert debt.debt_status == DebtStatus.CLEARED

    def test_completed_once_expected_amount_reached(self, service, member, account):
        first = service.post_contribution(member.id, account.id, "600.00", PaymentMode.CASH)
        second = service.post_contribution(member.id, account.id, "400.00", PaymentMode.CASH)

        assert first.contribution.payment_status == PaymentStatus.PARTIALLY_PAID
        assert second.contribution.payment_status == PaymentStatus.COMPLETED

    def test_no_debt_is_fine(self, session, service, member, account):
        result = service.post_contribution(member.id, account.id, "50.00", PaymentMode.MOBILE_MONEY)

        assert result.debt is None
        assert _totals(session, member).net_worth == Decimal("50.00")


# =========================================================================
# From savings
# =========================================================================


class TestFromSavings:

    def test_debits_savings_balance_only(
        self, session, service, member, account, make_debt, deposit
    ):
        deposit(member, "500.00")
        debt = make_debt(member, account, balance="300.00")

        service.post_contribution(member.id, account.id, "200.00", PaymentMode.SAVINGS)

        totals = _totals(session, member)
        assert totals.balance == Decimal("300.00")
        assert totals.net_worth == Decimal("500.00")
        assert debt.outstanding_balance == Decimal("100.00")

        row = session.execute(
            select(Saving).where(Saving.user_id == member.id).order_by(Saving.seq.desc())
        ).scalars().first()
        assert row.source == SavingSource.CONTRIBUTION
        assert row.debit_amount == Decimal("200.00")

    def test_insufficient_savings_rolls_back(
        self, session, service, member, account, make_debt, deposit
    ):
        deposit(member, "50.00")
        debt = make_debt(member, account, balance="300.00")

        with pytest.raises(InsufficientFundsError) as exc:
            service.post_contribution(member.id, account.id, "200.00", PaymentMode.SAVINGS)

        assert exc.value.available == Decimal("50.00")
        assert _count(session, Contribution) == 0
        session.refresh(debt)
        assert debt.outstanding_balance == Decimal("300.00")
        assert _totals(session, member).balance == Decimal("50.00")


# =========================================================================
# Group credit
# =========================================================================


class TestGroupCredit:

    def test_amount_equal_to_balance_adds_interest(
        self, session, service, member, account, make_debt
    ):
        debt = make_debt(member, account, balance="500.00")

        result = service.post_contribution(
            member.id, account.id, "500.00", PaymentMode.GROUP_CREDIT
        )

        assert result.interest == Decimal("5.00")
        assert debt.outstanding_balance == Decimal("505.00")
        assert result.contribution.payment_status == PaymentStatus.CREDITED
        assert result.income.origin == IncomeOrigin.GROUP_CREDIT_INTEREST
        assert result.income.interest_amount == Decimal("5.00")
        assert result.income.income_amount == Decimal("0.00")
        # Only the interest leaves net worth
        assert _totals(session, member).net_worth == Decimal("-5.00")

    def test_amount_below_balance(self, service, member, account, make_debt):
        debt = make_debt(member, account, balance="1000.00")

        result = service.post_contribution(
            member.id, account.id, "400.00", PaymentMode.GROUP_CREDIT
        )

        assert result.interest == Decimal("4.00")
        assert debt.outstanding_balance == Decimal("604.00")
        assert debt.debt_status == DebtStatus.PENDING

    def test_amount_above_balance_changes_nothing(
        self, session, service, member, account, make_debt
    ):
        debt = make_debt(member, account, balance="100.00")

        result = service.post_contribution(
            member.id, account.id, "200.00", PaymentMode.GROUP_CREDIT
        )

        assert result.interest == Decimal("0.00")
        assert result.income is None
        assert debt.outstanding_balance == Decimal("100.00")
        assert result.contribution.payment_status == PaymentStatus.CREDITED
        assert _count(session, Income) == 0

    def test_rate_comes_from_settings(self, session, member, account, make_debt, settings):
        service = ContributionPostingService(
            session, settings=replace(settings, credit_interest_rate=Decimal("0.1"))
        )
        debt = make_debt(member, account, balance="200.00")

        service.post_contribution(member.id, account.id, "200.00", PaymentMode.GROUP_CREDIT)

        assert debt.outstanding_balance == Decimal("220.00")


# =========================================================================
# Validation
# =========================================================================


class TestValidation:

    @pytest.mark.parametrize("amount", ["0", "-10.00", "abc"])
    def test_bad_amounts(self, service, member, account, amount):
        with pytest.raises(InvalidAmountError):
            service.post_contribution(member.id, account.id, amount, PaymentMode.CASH)

    def test_unknown_payment_method(self, service, member, account):
        with pytest.raises(ValidationError) as exc:
            service.post_contribution(member.id, account.id, "10.00", "Barter")
        assert exc.value.field == "payment_method"

    def test_logs_posting(self, service, member, account, captured_logs):
        service.post_contribution(member.id, account.id, "10.00", PaymentMode.CASH)

        record = next(r for r in captured_logs() if r["message"] == "contribution_posted")
        assert record["payment_kind"] == "other"
        assert record["operation"] == "post_contribution"
        assert record["user_id"] == str(member.id)
