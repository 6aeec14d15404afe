"""
Ledger services -- the imperative shell over the ORM models.

Every service takes the caller's Session, flushes its writes and leaves
commit/rollback to ``member_ledger.db.session_scope()``.
"""

from member_ledger.services.contribution_posting import (
    ContributionPosting,
    ContributionPostingService,
)
from member_ledger.services.debt_interest_service import (
    DebtInterestService,
    InterestRunResult,
)
from member_ledger.services.debt_repayment import DebtRepaymentService, Repayment
from member_ledger.services.loan_service import LoanPosting, LoanService
from member_ledger.services.payable_posting import (
    PayableMember,
    PayableMemberOutcome,
    PayablePosting,
    PayablePostingService,
)
from member_ledger.services.receivable_effect_service import (
    EffectRestoreResult,
    EffectReversalResult,
    ReceivableEffectService,
)
from member_ledger.services.receivable_posting import (
    ReceivablePosting,
    ReceivablePostingService,
)
from member_ledger.services.receivable_service import ReceivableService
from member_ledger.services.savings_ledger import SavingsLedger, SavingsTotals

__all__ = [
    "ContributionPosting",
    "ContributionPostingService",
    "DebtInterestService",
    "DebtRepaymentService",
    "EffectRestoreResult",
    "EffectReversalResult",
    "InterestRunResult",
    "LoanPosting",
    "LoanService",
    "PayableMember",
    "PayableMemberOutcome",
    "PayablePosting",
    "PayablePostingService",
    "ReceivableEffectService",
    "ReceivablePosting",
    "ReceivablePostingService",
    "ReceivableService",
    "Repayment",
    "SavingsLedger",
    "SavingsTotals",
]
