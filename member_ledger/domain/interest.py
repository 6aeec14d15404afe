"""
Interest arithmetic -- pure functions used by the monthly interest run and
the posting services.

Invariants enforced:
    - interest = round_money(balance x rate); new_balance =
      round_money(balance + interest).  With rate in [0, 1] and a positive
      balance, new_balance >= balance.
    - Rates are fractions (0.01 = 1%) validated to [0, 1].
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from member_ledger.db.types import round_money, to_money
from member_ledger.exceptions import InvalidInterestRateError

MIN_RATE = Decimal("0")
MAX_RATE = Decimal("1")


def validate_rate(rate) -> Decimal:
    """
    Coerce ``rate`` to Decimal and check it lies in [0, 1].

    Raises:
        InvalidInterestRateError: non-numeric, NaN or out-of-range rate.
    """
    try:
        value = to_money(rate)
    except ValueError as exc:
        raise InvalidInterestRateError(rate) from exc
    if not value.is_finite() or value < MIN_RATE or value > MAX_RATE:
        raise InvalidInterestRateError(rate)
    return value


@dataclass(frozen=True)
class InterestApplication:
    previous_balance: Decimal
    interest: Decimal
    new_balance: Decimal

    @property
    def percentage_increase(self) -> Decimal:
        if self.previous_balance == 0:
            return Decimal("0.00")
        return round_money(self.interest / self.previous_balance * 100)


def calculate_interest(balance, rate) -> InterestApplication:
    """
    Apply one period of simple interest to ``balance``.

    Example:
        calculate_interest(Decimal("333.33"), Decimal("0.01"))
        -> interest 3.33, new_balance 336.66
    """
    previous = to_money(balance)
    interest = round_money(previous * validate_rate(rate))
    return InterestApplication(
        previous_balance=previous,
        interest=interest,
        new_balance=round_money(previous + interest),
    )


def interest_period(today: date) -> date:
    """The period a run on ``today`` belongs to: the first of its month."""
    return today.replace(day=1)
