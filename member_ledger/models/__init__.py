"""ORM models for the member ledger."""

from member_ledger.models.account_collection import AccountCollection
from member_ledger.models.contribution import Contribution
from member_ledger.models.debt import Debt
from member_ledger.models.income import Income
from member_ledger.models.loan import Loan
from member_ledger.models.member import Account, Member
from member_ledger.models.payable import Payable
from member_ledger.models.receivable import Receivable, ReceivableEffect
from member_ledger.models.saving import Saving, SavingsBalance

__all__ = [
    "Member",
    "Account",
    "Debt",
    "Saving",
    "SavingsBalance",
    "AccountCollection",
    "Income",
    "Contribution",
    "Receivable",
    "ReceivableEffect",
    "Payable",
    "Loan",
]
