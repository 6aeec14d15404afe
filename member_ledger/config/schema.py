"""
Runtime settings schema.

``LedgerSettings`` is the frozen artifact returned by
``member_ledger.config.get_active_config()``.  Rates are fractions
(0.01 = 1%); the loan interest default is a percent, matching
``Loan.interest_percent``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class LedgerSettings:
    database_url: str
    monthly_interest_rate: Decimal = Decimal("0.01")
    credit_interest_rate: Decimal = Decimal("0.01")
    payable_interest_rate: Decimal = Decimal("0.01")
    default_loan_interest_percent: Decimal = Decimal("1")
    recent_saving_capture_limit: int = 10
    log_level: str = "INFO"
