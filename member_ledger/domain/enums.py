"""
Domain enums for the member ledger.

Plain ``str`` enums stored by value in String columns.  They carry no
behavior; colors, badges and labels belong to whatever renders them.
"""

from enum import Enum


class DebtStatus(str, Enum):
    APPROVED = "Approved"
    CLEARED = "Cleared"
    CREDITED = "Credited"
    DEFAULTED = "Defaulted"
    PARTIALLY_PAID = "Partially Paid"
    PENDING = "Pending"
    REJECTED = "Rejected"


class PaymentStatus(str, Enum):
    CREDITED = "Credited"
    COMPLETED = "Completed"
    PARTIALLY_PAID = "Partially Paid"
    PENDING = "Pending"
    OVERDUE = "Overdue"


class PaymentMode(str, Enum):
    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"
    CHEQUE = "Cheque"
    CARD = "Credit or Debit Card"
    MOBILE_MONEY = "Mobile Money (M-PESA/AIRTEL)"
    ONLINE_PAYMENT_GATEWAY = "Online Payment Gateway"
    CREDIT_LOAN = "Credited (Loan)"
    SAVINGS = "Savings"
    GROUP_CREDIT = "Group Credit"


class PaymentKind(str, Enum):
    """How a contribution is funded, derived from its PaymentMode."""

    FROM_SAVINGS = "from_savings"
    GROUP_CREDIT = "group_credit"
    OTHER = "other"

    @classmethod
    def for_mode(cls, mode: "PaymentMode | str") -> "PaymentKind":
        mode = PaymentMode(mode)
        if mode is PaymentMode.SAVINGS:
            return cls.FROM_SAVINGS
        if mode is PaymentMode.GROUP_CREDIT:
            return cls.GROUP_CREDIT
        return cls.OTHER


class MemberStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"


class FrequencyType(str, Enum):
    ONE_OFF = "One-Off"
    AD_HOC = "Ad-Hoc"
    RECURRING = "Recurring"


class IncomeOrigin(str, Enum):
    PAYABLE_INTEREST = "Payable Interest"
    GROUP_CREDIT_INTEREST = "Group Credit Interest"
    LOAN_INTEREST = "Loan Interest"
    REGISTRATION_FEE = "Registration Fee"
    MANUAL = "Manual"


class SavingSource(str, Enum):
    """What produced a Saving row."""

    DEPOSIT = "deposit"
    RECEIVABLE = "receivable"
    CONTRIBUTION = "contribution"
    PAYABLE = "payable"
    LOAN = "loan"
    REPAYMENT = "repayment"
    INTEREST = "interest"
    REVERSAL = "reversal"
