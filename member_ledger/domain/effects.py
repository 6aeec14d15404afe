"""
Effect DTOs -- what a posting step did, in a form the effect recorder stores.

Responsibility:
    SavingSnapshot describes one Saving row appended by the savings ledger
    (its delta and the running totals before/after).  AppliedReceivableEffects
    is the report a receivable posting hands to the effect recorder: the
    exact previous values it overwrote and the rows it created.

Architecture position:
    Ledger > Domain -- pure, zero I/O.  Serialization helpers convert to and
    from the JSON stored on ReceivableEffect (UUIDs and Decimals as strings).

Failure modes:
    - MalformedSnapshotError from from_dict() when stored JSON is missing a
      key or holds a value that is not a UUID / number.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from member_ledger.exceptions import MalformedSnapshotError


def _uuid(payload: dict[str, Any], key: str) -> UUID:
    try:
        return UUID(str(payload[key]))
    except KeyError as exc:
        raise MalformedSnapshotError(f"missing key {key!r}", payload) from exc
    except ValueError as exc:
        raise MalformedSnapshotError(f"{key!r} is not a UUID", payload) from exc


def _decimal(payload: dict[str, Any], key: str) -> Decimal:
    try:
        return Decimal(str(payload[key]))
    except KeyError as exc:
        raise MalformedSnapshotError(f"missing key {key!r}", payload) from exc
    except InvalidOperation as exc:
        raise MalformedSnapshotError(f"{key!r} is not a number", payload) from exc


@dataclass(frozen=True)
class SavingSnapshot:
    """One appended Saving row and the running totals around it."""

    saving_id: UUID
    credit_amount: Decimal
    debit_amount: Decimal
    previous_balance: Decimal
    previous_net_worth: Decimal
    balance: Decimal
    net_worth: Decimal

    @property
    def balance_delta(self) -> Decimal:
        return self.balance - self.previous_balance

    @property
    def net_worth_delta(self) -> Decimal:
        return self.net_worth - self.previous_net_worth

    def to_dict(self) -> dict[str, str]:
        return {
            "saving_id": str(self.saving_id),
            "credit_amount": str(self.credit_amount),
            "debit_amount": str(self.debit_amount),
            "previous_balance": str(self.previous_balance),
            "previous_net_worth": str(self.previous_net_worth),
            "balance": str(self.balance),
            "net_worth": str(self.net_worth),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> SavingSnapshot:
        if not isinstance(payload, dict):
            raise MalformedSnapshotError("snapshot is not an object", payload)
        return cls(
            saving_id=_uuid(payload, "saving_id"),
            credit_amount=_decimal(payload, "credit_amount"),
            debit_amount=_decimal(payload, "debit_amount"),
            previous_balance=_decimal(payload, "previous_balance"),
            previous_net_worth=_decimal(payload, "previous_net_worth"),
            balance=_decimal(payload, "balance"),
            net_worth=_decimal(payload, "net_worth"),
        )


def snapshots_from_json(payload: Any) -> tuple[SavingSnapshot, ...]:
    """Decode the saving_snapshots column.  None means "not recorded"."""
    if payload is None:
        return ()
    if not isinstance(payload, list):
        raise MalformedSnapshotError("saving_snapshots is not a list", payload)
    return tuple(SavingSnapshot.from_dict(item) for item in payload)


def ids_from_json(payload: Any) -> tuple[UUID, ...]:
    """Decode a JSON list of UUID strings."""
    if payload is None:
        return ()
    if not isinstance(payload, list):
        raise MalformedSnapshotError("id list is not a list", payload)
    try:
        return tuple(UUID(str(item)) for item in payload)
    except ValueError as exc:
        raise MalformedSnapshotError("id list holds a non-UUID", payload) from exc


@dataclass(frozen=True)
class AppliedReceivableEffects:
    """
    Everything a receivable posting changed.

    Contract:
        account_collection_prev_amount is None when the posting created the
        collection row.  debt_prev_outstanding is None when the posting
        created the debt (debt_created is then True) or touched no debt.
    """

    account_collection_id: UUID | None
    account_collection_prev_amount: Decimal | None
    account_collection_post_amount: Decimal | None
    debt_id: UUID | None
    debt_prev_outstanding: Decimal | None
    debt_created: bool = False
    saving_snapshots: tuple[SavingSnapshot, ...] = field(default_factory=tuple)

    @property
    def saving_ids(self) -> tuple[UUID, ...]:
        return tuple(s.saving_id for s in self.saving_snapshots)
