"""
BaseService -- abstract base for all ledger services.

Responsibility:
    Provides the common constructor, the flush-only session contract and
    the locked row lookups every posting/reversal service shares.

Architecture position:
    Ledger > Services -- imperative shell.

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      roll back the session themselves.  Atomic units are SAVEPOINTs
      (``session.begin_nested()``): a failing unit undoes its own writes
      and re-raises, leaving the caller's transaction usable.
    - Rows that are read-then-written (Debt, AccountCollection) are loaded
      with ``SELECT ... FOR UPDATE``.

Failure modes:
    - EntityNotFoundError from _load() when the id does not exist.
"""

from abc import ABC
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from member_ledger.db.base import Base, RecordState
from member_ledger.db.types import round_money
from member_ledger.domain.enums import PaymentMode
from member_ledger.exceptions import (
    EntityNotFoundError,
    InvalidAmountError,
    ValidationError,
)
from member_ledger.models.account_collection import AccountCollection
from member_ledger.models.debt import Debt

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC):
    """
    Abstract base class for all ledger services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        self.session = session

    def _load(
        self,
        model: type[ModelType],
        entity_id: UUID,
        lock: bool = False,
        include_deleted: bool = False,
    ) -> ModelType:
        stmt = select(model).where(model.id == entity_id)
        if not include_deleted and hasattr(model, "state"):
            stmt = stmt.where(model.state == RecordState.ACTIVE)
        if lock:
            stmt = stmt.with_for_update()
        entity = self.session.execute(stmt).scalar_one_or_none()
        if entity is None:
            raise EntityNotFoundError(model.__name__, entity_id)
        return entity

    def _active_debt(
        self, user_id: UUID, account_id: UUID | None, lock: bool = True
    ) -> Debt | None:
        """Oldest active debt for (user, account); account None is a credited loan."""
        stmt = select(Debt).where(
            Debt.user_id == user_id,
            Debt.state == RecordState.ACTIVE,
        )
        if account_id is None:
            stmt = stmt.where(Debt.account_id.is_(None))
        else:
            stmt = stmt.where(Debt.account_id == account_id)
        stmt = stmt.order_by(Debt.created_at, Debt.id).limit(1)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def _active_collection(
        self, user_id: UUID, account_id: UUID, lock: bool = True
    ) -> AccountCollection | None:
        stmt = (
            select(AccountCollection)
            .where(
                AccountCollection.user_id == user_id,
                AccountCollection.account_id == account_id,
                AccountCollection.state == RecordState.ACTIVE,
            )
            .order_by(AccountCollection.created_at, AccountCollection.id)
            .limit(1)
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def _adjust_collection(
        self, user_id: UUID, account_id: UUID, delta: Decimal
    ) -> tuple[AccountCollection, Decimal | None]:
        """
        Add ``delta`` to the (user, account) collection, creating the row
        when absent.

        Returns:
            The collection row and its previous amount (None if created).
        """
        collection = self._active_collection(user_id, account_id)
        if collection is None:
            collection = AccountCollection(
                user_id=user_id,
                account_id=account_id,
                amount=round_money(delta),
            )
            self.session.add(collection)
            self.session.flush()
            return collection, None
        previous = collection.amount
        collection.amount = round_money(previous + delta)
        return collection, previous


def coerce_payment_mode(value) -> PaymentMode:
    """PaymentMode for ``value``; unknown names are a ValidationError."""
    try:
        return PaymentMode(value)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown payment method: {value!r}", field="payment_method"
        ) from exc


def coerce_amount(value) -> Decimal:
    """``value`` rounded to money; anything non-numeric is an InvalidAmountError."""
    try:
        amount = round_money(value)
    except (ValueError, ArithmeticError) as exc:
        raise InvalidAmountError(value, "not a number") from exc
    if not amount.is_finite():
        raise InvalidAmountError(value, "not a finite number")
    return amount
