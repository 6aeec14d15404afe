"""
Interest arithmetic (member_ledger.domain.interest).

Tests cover:
- Concrete scenarios: 1000 -> 1010, 333.33 -> 336.66
- Monotonicity over arbitrary balances and rates (Hypothesis)
- Rate validation bounds and non-numeric input
- Interest period derivation
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from member_ledger.db.types import round_money
from member_ledger.domain.interest import (
    calculate_interest,
    interest_period,
    validate_rate,
)
from member_ledger.exceptions import InvalidInterestRateError, ValidationError

balances = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("9999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
rates = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("1"),
    places=4,
    allow_nan=False,
    allow_infinity=False,
)


class TestCalculateInterest:

    def test_one_percent_of_a_thousand(self):
        result = calculate_interest(Decimal("1000.00"), Decimal("0.01"))
        assert result.interest == Decimal("10.00")
        assert result.new_balance == Decimal("1010.00")
        assert result.percentage_increase == Decimal("1.00")

    def test_interest_is_rounded_to_cents(self):
        result = calculate_interest(Decimal("333.33"), Decimal("0.01"))
        assert result.interest == Decimal("3.33")
        assert result.new_balance == Decimal("336.66")

    def test_half_cent_rounds_up(self):
        result = calculate_interest(Decimal("50.50"), Decimal("0.01"))
        assert result.interest == Decimal("0.51")

    def test_zero_rate_leaves_balance(self):
        result = calculate_interest(Decimal("250.00"), Decimal("0"))
        assert result.interest == Decimal("0.00")
        assert result.new_balance == Decimal("250.00")

    def test_zero_balance_has_no_percentage(self):
        result = calculate_interest(Decimal("0.00"), Decimal("0.01"))
        assert result.percentage_increase == Decimal("0.00")

    def test_accepts_strings(self):
        result = calculate_interest("1000", "0.02")
        assert result.new_balance == Decimal("1020.00")

    @given(balance=balances, rate=rates)
    @settings(max_examples=300)
    def test_new_balance_never_below_previous(self, balance, rate):
        result = calculate_interest(balance, rate)
        assert result.new_balance >= balance
        assert result.new_balance == round_money(balance + round_money(balance * rate))

    @given(balance=balances, rate=rates)
    @settings(max_examples=200)
    def test_deterministic(self, balance, rate):
        assert calculate_interest(balance, rate) == calculate_interest(balance, rate)


class TestValidateRate:

    @pytest.mark.parametrize("rate", ["0", "0.01", "0.5", "1", 0.25, 1])
    def test_accepts_range(self, rate):
        assert validate_rate(rate) == Decimal(str(rate))

    @pytest.mark.parametrize("rate", ["-0.01", "1.01", "2", -1, "NaN", "Infinity"])
    def test_rejects_out_of_range(self, rate):
        with pytest.raises(InvalidInterestRateError):
            validate_rate(rate)

    @pytest.mark.parametrize("rate", ["abc", None, True, object()])
    def test_rejects_non_numbers(self, rate):
        with pytest.raises(InvalidInterestRateError) as exc:
            validate_rate(rate)
        assert exc.value.code == "INVALID_INTEREST_RATE"

    def test_error_is_a_validation_error_and_value_error(self):
        with pytest.raises(ValidationError):
            validate_rate("5")
        with pytest.raises(ValueError):
            validate_rate("5")


class TestInterestPeriod:

    def test_first_of_month(self):
        assert interest_period(date(2024, 3, 15)) == date(2024, 3, 1)

    def test_first_day_is_its_own_period(self):
        assert interest_period(date(2024, 1, 1)) == date(2024, 1, 1)
