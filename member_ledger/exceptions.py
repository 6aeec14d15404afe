"""
Typed Exception Hierarchy for the Member Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Posting, reversal and interest code raise errors that the calling handler
must report back to a member or an administrator.  Each error is a typed
class with:
  1. a CODE class attribute (machine-readable, stable across releases)
  2. structured attributes (user_id, amount, balance ...) instead of values
     embedded only in the message string

    try:
        ReceivableService(session).create_receivable(...)
    except MissingDebtError as e:
        form.error(code=e.code, account=e.account_id)
    except InsufficientFundsError as e:
        form.error(code=e.code, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ValidationError
    |   +-- InvalidInterestRateError   (also a ValueError)
    |   +-- InvalidAmountError
    |   +-- MissingDebtError
    |   +-- MissingAccountError
    |   +-- RepaymentExceedsBalanceError
    |   +-- MalformedSnapshotError
    |   +-- EntityNotFoundError
    |
    +-- InsufficientFundsError
    |
    +-- InvariantViolationError
    |   +-- DebtOverpaymentError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                        | When Raised
----------------------------|------------------------------------------------
VALIDATION_ERROR            | Generic invalid input
INVALID_INTEREST_RATE       | Rate outside [0, 1] or not a number
INVALID_AMOUNT              | Zero / non-positive / non-numeric amount
MISSING_DEBT                | Receivable has no Debt for (user, account)
MISSING_ACCOUNT             | Repayment on a non-loan debt without account
REPAYMENT_EXCEEDS_BALANCE   | Repayment larger than the outstanding balance
MALFORMED_SNAPSHOT          | Stored effect JSON cannot be decoded
ENTITY_NOT_FOUND            | Row with the given id does not exist
INSUFFICIENT_FUNDS          | Savings debit would drive the balance below 0
INVARIANT_VIOLATION         | A ledger invariant would be broken
DEBT_OVERPAYMENT            | Receivable would drive a Debt below 0
IMMUTABILITY_VIOLATION      | UPDATE/DELETE attempted on a Saving row

===============================================================================
PROPAGATION
===============================================================================

Business-rule errors propagate to the initiating caller; the enclosing
SAVEPOINT / session_scope() rolls back every write made by the failing
operation.  Infrastructure errors (SQLAlchemy, driver) are never wrapped.
The only place errors are caught and counted is the per-debt loop of the
monthly interest run.
"""

from decimal import Decimal


class LedgerError(Exception):
    """
    Base exception for all member ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"


# Validation


class ValidationError(LedgerError):
    """Input or linkage failed validation; nothing was written."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidInterestRateError(ValidationError, ValueError):
    """Interest rate is not a number in [0, 1]."""

    code: str = "INVALID_INTEREST_RATE"

    def __init__(self, rate):
        self.rate = rate
        super().__init__(
            f"Interest rate must be between 0 and 1 (got {rate!r})",
            field="rate",
        )


class InvalidAmountError(ValidationError):
    """Monetary amount is not acceptable for the operation."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}", field="amount")


class MissingDebtError(ValidationError):
    """A receivable was posted for a (user, account) with no Debt."""

    code: str = "MISSING_DEBT"

    def __init__(self, user_id, account_id):
        self.user_id = user_id
        self.account_id = account_id
        super().__init__(
            f"No associated debt record for user {user_id} on account {account_id}"
        )


class MissingAccountError(ValidationError):
    """A repayment targets a debt with no account that is not a credited loan."""

    code: str = "MISSING_ACCOUNT"

    def __init__(self, debt_id):
        self.debt_id = debt_id
        super().__init__(f"Debt {debt_id} has no associated account")


class RepaymentExceedsBalanceError(ValidationError):
    """Repayment amount is larger than the outstanding balance."""

    code: str = "REPAYMENT_EXCEEDS_BALANCE"

    def __init__(self, debt_id, amount: Decimal, outstanding_balance: Decimal):
        self.debt_id = debt_id
        self.amount = amount
        self.outstanding_balance = outstanding_balance
        super().__init__(
            f"Repayment {amount} exceeds outstanding balance "
            f"{outstanding_balance} on debt {debt_id}",
            field="amount",
        )


class MalformedSnapshotError(ValidationError):
    """Stored effect snapshot data could not be decoded."""

    code: str = "MALFORMED_SNAPSHOT"

    def __init__(self, reason: str, payload=None):
        self.reason = reason
        self.payload = payload
        super().__init__(f"Malformed effect snapshot: {reason}")


class EntityNotFoundError(ValidationError):
    """Row with the given id does not exist (or is soft-deleted)."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Funds


class InsufficientFundsError(LedgerError):
    """
    A savings debit would leave the member with a negative balance.

    Never retried: the operation fails and its SAVEPOINT rolls back.
    """

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, user_id, requested: Decimal, available: Decimal):
        self.user_id = user_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient savings for user {user_id}: "
            f"requested {requested}, available {available}"
        )


# Invariants


class InvariantViolationError(LedgerError):
    """A ledger invariant would be broken by the requested mutation."""

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, invariant: str, message: str):
        self.invariant = invariant
        super().__init__(message)


class DebtOverpaymentError(InvariantViolationError):
    """
    A receivable would drive a debt's outstanding balance below zero.

    Raised before any mutation.  Payments funded from savings are exempt
    and clamp the balance at zero instead.
    """

    code: str = "DEBT_OVERPAYMENT"

    def __init__(self, debt_id, amount: Decimal, outstanding_balance: Decimal):
        self.debt_id = debt_id
        self.amount = amount
        self.outstanding_balance = outstanding_balance
        super().__init__(
            "non_negative_debt",
            f"Receivable of {amount} exceeds outstanding balance "
            f"{outstanding_balance} on debt {debt_id}",
        )


# Immutability


class ImmutabilityViolationError(LedgerError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
