"""
PayablePostingService tests.

Tests cover:
- Shortfall charged as debt plus interest, with a Payable Interest income
- Members who collected enough are left alone
- Shortfall taken from savings
- Whole payable rolls back when one member cannot pay
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from member_ledger.domain.enums import DebtStatus, IncomeOrigin, SavingSource
from member_ledger.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    ValidationError,
)
from member_ledger.models import AccountCollection, Debt, Income, Payable, Saving
from member_ledger.services.payable_posting import PayableMember, PayablePostingService
from member_ledger.services.receivable_posting import ReceivablePostingService
from member_ledger.services.savings_ledger import SavingsLedger


@pytest.fixture
def service(session, settings):
    return PayablePostingService(session, settings=settings)


@pytest.fixture
def collected(session, make_debt):
    """Give ``member`` a collection of ``amount`` on ``account`` via a receivable."""

    def _collected(member, account, amount):
        make_debt(member, account, balance=amount)
        ReceivablePostingService(session).post_receivable(member.id, account.id, amount)

    return _collected


def _debt(session, member, account):
    return session.execute(
        select(Debt).where(Debt.user_id == member.id, Debt.account_id == account.id)
    ).scalar_one()


class TestShortfallAsDebt:

    def test_half_collected(self, session, service, member, account, collected, actor_id):
        collected(member, account, "500.00")
        net_worth_before = SavingsLedger(session).current(member.id).net_worth

        posting = service.post_payable(
            account.id, [PayableMember(member.id, Decimal("1000.00"))], actor_id=actor_id
        )

        outcome = posting.outcomes[0]
        assert outcome.shortfall == Decimal("500.00")
        assert outcome.interest == Decimal("5.00")
        assert posting.total_interest == Decimal("5.00")
        assert posting.payable.total_amount == Decimal("1000.00")

        debt = _debt(session, member, account)
        assert debt.id == outcome.debt_id
        assert debt.outstanding_balance == Decimal("505.00")
        assert debt.debt_status == DebtStatus.PENDING

        income = session.get(Income, outcome.income_id)
        assert income.origin == IncomeOrigin.PAYABLE_INTEREST
        assert income.interest_amount == Decimal("5.00")
        assert income.income_amount == Decimal("0.00")

        saving = session.get(Saving, outcome.saving_id)
        assert saving.source == SavingSource.PAYABLE
        assert saving.debit_amount == Decimal("505.00")
        totals = SavingsLedger(session).current(member.id)
        assert totals.net_worth == net_worth_before - Decimal("5.00")

    def test_nothing_collected_creates_debt(self, session, service, member, account):
        posting = service.post_payable(account.id, [PayableMember(member.id, "200.00")])

        debt = session.get(Debt, posting.outcomes[0].debt_id)
        assert debt.outstanding_balance == Decimal("202.00")
        assert debt.created_by_receivable_id is None

    def test_fully_collected_member_untouched(
        self, session, service, member, account, collected
    ):
        collected(member, account, "2000.00")

        posting = service.post_payable(account.id, [PayableMember(member.id, "1000.00")])

        outcome = posting.outcomes[0]
        assert outcome.shortfall == Decimal("0.00")
        assert outcome.debt_id is None
        assert session.execute(select(func.count()).select_from(Income)).scalar_one() == 0
        assert _debt(session, member, account).outstanding_balance == Decimal("0.00")

    def test_several_members(self, session, service, make_member, account, collected):
        alice, bob = make_member("Alice"), make_member("Bob")
        collected(alice, account, "1000.00")

        posting = service.post_payable(
            account.id,
            [PayableMember(alice.id, "1000.00"), PayableMember(bob.id, "1000.00")],
        )

        assert [o.shortfall for o in posting.outcomes] == [Decimal("0.00"), Decimal("1000.00")]
        assert posting.total_interest == Decimal("10.00")


class TestShortfallFromSavings:

    def test_debits_savings_and_grows_collection(
        self, session, service, member, account, deposit
    ):
        deposit(member, "800.00")

        posting = service.post_payable(
            account.id, [PayableMember(member.id, "300.00")], from_savings=True
        )

        outcome = posting.outcomes[0]
        assert outcome.interest == Decimal("0.00")
        assert outcome.debt_id is None
        totals = SavingsLedger(session).current(member.id)
        assert totals.balance == Decimal("500.00")
        assert totals.net_worth == Decimal("800.00")
        collection = session.execute(
            select(AccountCollection).where(AccountCollection.user_id == member.id)
        ).scalar_one()
        assert collection.amount == Decimal("300.00")

    def test_member_flag_requests_savings(self, session, service, member, account, deposit):
        deposit(member, "100.00")

        service.post_payable(
            account.id, [PayableMember(member.id, "40.00", from_savings=True)]
        )

        assert SavingsLedger(session).current(member.id).balance == Decimal("60.00")

    def test_one_member_short_of_savings_rolls_back_all(
        self, session, service, make_member, account, deposit
    ):
        alice, bob = make_member("Alice"), make_member("Bob")
        deposit(alice, "500.00")
        deposit(bob, "10.00")

        with pytest.raises(InsufficientFundsError):
            service.post_payable(
                account.id,
                [PayableMember(alice.id, "100.00"), PayableMember(bob.id, "100.00")],
                from_savings=True,
            )

        assert session.execute(select(func.count()).select_from(Payable)).scalar_one() == 0
        assert SavingsLedger(session).current(alice.id).balance == Decimal("500.00")


class TestValidation:

    def test_needs_members(self, service, account):
        with pytest.raises(ValidationError):
            service.post_payable(account.id, [])

    def test_amount_due_positive(self, service, member, account):
        with pytest.raises(InvalidAmountError):
            service.post_payable(account.id, [PayableMember(member.id, "0")])
