"""
ReceivableEffectService -- records, reverts and restores receivable effects.

Responsibility:
    record_creation_effects() stores what a receivable posting changed as a
    ReceivableEffect row.  revert_effects_for_receivable() undoes the latest
    effect (used before the receivable is soft-deleted), and
    restore_effects_for_receivable() re-applies what can safely be re-applied
    when the receivable is restored.

Architecture position:
    Ledger > Services.  Called by ReceivableService; also usable on its own
    for receivables posted outside the service.

Invariants enforced:
    - One effect row per recording, numbered by revision.  The latest
      revision is the one reverted or restored.
    - Reverting is idempotent: an effect already marked reverted is left
      alone and nothing is written.
    - Every reversal runs in one SAVEPOINT; a failure leaves the effect,
      the receivable and every touched row as they were.
    - Saving rows are never edited.  Reversal appends offsetting rows that
      point at the row they undo.
    - Provenance, not timestamps, decides whether a debt belongs to the
      receivable: effect.debt_created_by_receivable, or
      Debt.created_by_receivable_id on legacy data.

Reversal paths:
    No effect (receivable posted before effects were recorded):
        A negative receivable's debt is soft-deleted when its balance equals
        |amount| or its provenance is this receivable, else reduced by
        |amount| (clamped, Cleared at zero).  The collection loses
        amount_contributed.  A reverted, best_effort effect row documents
        what was done.
    Effect with saving snapshots:
        Offsetting rows are appended newest first, each undoing its
        snapshot's change to balance and net worth.  If nothing else
        touched the member's savings meanwhile, balance and net worth land
        exactly on the values from before the posting.
    Effect with saving ids only:
        Offsetting rows swap credit and debit but leave balance and net
        worth where they are; net worth cannot be inverted without a
        snapshot.  Missing rows are logged and skipped.
    Collection:
        Reset to the previous amount, or soft-deleted when the posting
        created it.  Without a recorded id the row is found by (member,
        account) and reduced by the receivable amount.
    Debt:
        Reset to the previous balance when known, soft-deleted when the
        posting created it, otherwise reduced by |amount| if its provenance
        allows and the balance covers it.

Restore:
    The collection is un-deleted if needed and set back to the amount the
    posting left it at; a debt the posting created comes back.  Saving rows
    written by the reversal stay; restore logs that it skipped them.  The
    re-applied rows are recorded as a new revision, so deleting the
    receivable again reverts them (and writes no saving rows).

Lock order:
    Debt, then AccountCollection, then the member's SavingsBalance, on
    every path that takes more than one of them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeVar
from uuid import UUID

from sqlalchemy import func, select

from member_ledger.config import LedgerSettings, get_active_config
from member_ledger.db.base import Base
from member_ledger.db.types import MONEY_EPSILON, ZERO, round_money
from member_ledger.domain.clock import Clock, SystemClock
from member_ledger.domain.effects import (
    AppliedReceivableEffects,
    SavingSnapshot,
    ids_from_json,
    snapshots_from_json,
)
from member_ledger.domain.enums import DebtStatus, SavingSource
from member_ledger.logging_config import LogContext, get_logger
from member_ledger.models.account_collection import AccountCollection
from member_ledger.models.debt import Debt
from member_ledger.models.receivable import Receivable, ReceivableEffect
from member_ledger.models.saving import Saving
from member_ledger.services.base import BaseService
from member_ledger.services.savings_ledger import SavingsLedger

logger = get_logger("services.receivable_effect")

ModelType = TypeVar("ModelType", bound=Base)


@dataclass(frozen=True)
class EffectReversalResult:
    effect_id: UUID | None
    reverted_now: bool
    best_effort: bool = False
    reversal_saving_ids: tuple[UUID, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class EffectRestoreResult:
    effect_id: UUID | None
    restored_now: bool
    collection_restored: bool = False
    debt_restored: bool = False
    savings_skipped: int = 0
    reapplied_effect_id: UUID | None = None


class ReceivableEffectService(BaseService):

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        ledger: SavingsLedger | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._settings = settings or get_active_config()
        self._ledger = ledger or SavingsLedger(session)

    # =========================================================================
    # Recording
    # =========================================================================

    def record_creation_effects(
        self,
        receivable: Receivable,
        applied: AppliedReceivableEffects | None = None,
        debt_created_by_receivable: bool = False,
        actor_id: UUID | None = None,
    ) -> ReceivableEffect:
        """
        Persist a new effect row for ``receivable``.

        With ``applied`` (the posting's own report) the row holds exact
        previous values and saving snapshots.  Without it the current
        collection amount, the member's most recent saving ids and the
        current debt balance are captured instead.
        """
        effect = ReceivableEffect(
            receivable_id=receivable.id,
            revision=self._next_revision(receivable.id),
            user_id=receivable.user_id,
            account_id=receivable.account_id,
            created_by_id=actor_id,
        )

        if applied is not None:
            effect.account_collection_id = applied.account_collection_id
            effect.account_collection_prev_amount = applied.account_collection_prev_amount
            effect.account_collection_post_amount = applied.account_collection_post_amount
            effect.saving_ids = [str(i) for i in applied.saving_ids]
            effect.saving_snapshots = [s.to_dict() for s in applied.saving_snapshots]
            effect.debt_id = applied.debt_id
            effect.debt_prev_outstanding = applied.debt_prev_outstanding
            effect.debt_created_by_receivable = (
                applied.debt_created or debt_created_by_receivable
            )
        else:
            debt = self._active_debt(receivable.user_id, receivable.account_id)
            if debt is not None:
                effect.debt_id = debt.id
                effect.debt_prev_outstanding = debt.outstanding_balance
            effect.debt_created_by_receivable = debt_created_by_receivable
            collection = self._active_collection(receivable.user_id, receivable.account_id)
            if collection is not None:
                effect.account_collection_id = collection.id
                effect.account_collection_prev_amount = collection.amount
                effect.account_collection_post_amount = collection.amount
            effect.saving_ids = [
                str(i)
                for i in self._ledger.recent_saving_ids(
                    receivable.user_id, self._settings.recent_saving_capture_limit
                )
            ]
            effect.saving_snapshots = None

        self.session.add(effect)
        self.session.flush()

        logger.info(
            "effect_recorded",
            extra={
                "effect_id": str(effect.id),
                "receivable_id": str(receivable.id),
                "revision": effect.revision,
                "exact": applied is not None,
                "saving_count": len(effect.saving_ids or []),
                "debt_id": str(effect.debt_id) if effect.debt_id else None,
                "debt_created_by_receivable": effect.debt_created_by_receivable,
            },
        )
        return effect

    # =========================================================================
    # Reversal
    # =========================================================================

    def revert_effects_for_receivable(
        self, receivable: Receivable, actor_id: UUID | None = None
    ) -> EffectReversalResult:
        with LogContext.bind(
            receivable_id=receivable.id,
            user_id=receivable.user_id,
            actor_id=actor_id,
            operation="revert_effects",
        ):
            with self.session.begin_nested():
                effect = self._latest_effect(receivable.id)
                if effect is None:
                    return self._revert_without_effect(receivable, actor_id)
                if effect.reverted:
                    logger.info(
                        "effect_already_reverted",
                        extra={"effect_id": str(effect.id)},
                    )
                    return EffectReversalResult(
                        effect_id=effect.id,
                        reverted_now=False,
                        best_effort=effect.best_effort,
                    )
                return self._revert_effect(receivable, effect, actor_id)

    def _revert_without_effect(
        self, receivable: Receivable, actor_id: UUID | None
    ) -> EffectReversalResult:
        amount = receivable.amount_contributed
        now = self._clock.now()

        debt = None
        debt_prev = None
        debt_deleted = False
        if amount < ZERO:
            positive = -amount
            debt = self._active_debt(receivable.user_id, receivable.account_id)
            if debt is not None:
                debt_prev = debt.outstanding_balance
                # Balance match is ambiguous when an unrelated posting
                # happened to leave the debt at the same figure
                if (
                    debt.outstanding_balance == positive
                    or debt.created_by_receivable_id == receivable.id
                ):
                    debt.mark_deleted(now)
                    debt_deleted = True
                else:
                    debt.set_outstanding(debt.outstanding_balance - positive)
                    if debt.outstanding_balance == ZERO:
                        debt.debt_status = DebtStatus.CLEARED
                debt.updated_by_id = actor_id

        collection = self._active_collection(receivable.user_id, receivable.account_id)
        collection_prev = None
        if collection is not None:
            collection_prev = collection.amount
            collection.amount = round_money(collection.amount - amount)
            collection.updated_by_id = actor_id

        effect = ReceivableEffect(
            receivable_id=receivable.id,
            revision=self._next_revision(receivable.id),
            user_id=receivable.user_id,
            account_id=receivable.account_id,
            account_collection_id=collection.id if collection is not None else None,
            account_collection_prev_amount=collection_prev,
            account_collection_post_amount=(
                collection.amount if collection is not None else None
            ),
            saving_ids=[],
            saving_snapshots=None,
            debt_id=debt.id if debt is not None else None,
            debt_prev_outstanding=debt_prev,
            debt_created_by_receivable=debt_deleted,
            reverted=True,
            reverted_at=now,
            reverted_by=actor_id,
            reversal_saving_ids=[],
            best_effort=True,
            created_by_id=actor_id,
        )
        self.session.add(effect)
        self.session.flush()

        logger.warning(
            "effect_reverted_best_effort",
            extra={
                "effect_id": str(effect.id),
                "amount": str(amount),
                "debt_id": str(debt.id) if debt is not None else None,
                "debt_deleted": debt_deleted,
                "collection_id": str(collection.id) if collection is not None else None,
            },
        )
        return EffectReversalResult(effect_id=effect.id, reverted_now=True, best_effort=True)

    def _revert_effect(
        self, receivable: Receivable, effect: ReceivableEffect, actor_id: UUID | None
    ) -> EffectReversalResult:
        now = self._clock.now()
        user_id = effect.user_id or receivable.user_id

        snapshots = snapshots_from_json(effect.saving_snapshots)

        # Lock order: debt, collection, savings balance
        self._revert_debt(receivable, effect, now, actor_id)
        self._revert_collection(receivable, effect, now, actor_id)

        if snapshots:
            reversal_ids = self._reverse_snapshots(user_id, snapshots, actor_id)
        else:
            reversal_ids = self._reverse_saving_ids(
                user_id, ids_from_json(effect.saving_ids), actor_id
            )

        effect.reverted = True
        effect.reverted_at = now
        effect.reverted_by = actor_id
        effect.reversal_saving_ids = [str(i) for i in reversal_ids]
        effect.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "effect_reverted",
            extra={
                "effect_id": str(effect.id),
                "revision": effect.revision,
                "exact": bool(snapshots),
                "reversal_saving_ids": effect.reversal_saving_ids,
            },
        )
        return EffectReversalResult(
            effect_id=effect.id,
            reverted_now=True,
            best_effort=effect.best_effort,
            reversal_saving_ids=tuple(reversal_ids),
        )

    def _reverse_snapshots(
        self,
        user_id: UUID,
        snapshots: tuple[SavingSnapshot, ...],
        actor_id: UUID | None,
    ) -> list[UUID]:
        reversal_ids = []
        for snapshot in reversed(snapshots):
            reversal = self._ledger.append(
                user_id,
                source=SavingSource.REVERSAL,
                credit=snapshot.debit_amount,
                debit=snapshot.credit_amount,
                balance_change=-snapshot.balance_delta,
                net_worth_change=-snapshot.net_worth_delta,
                reverses_saving_id=snapshot.saving_id,
                description="Receivable reversal",
                actor_id=actor_id,
            )
            reversal_ids.append(reversal.saving_id)
        return reversal_ids

    def _reverse_saving_ids(
        self, user_id: UUID, saving_ids: tuple[UUID, ...], actor_id: UUID | None
    ) -> list[UUID]:
        reversal_ids = []
        for saving_id in saving_ids:
            saving = self.session.get(Saving, saving_id)
            if saving is None:
                logger.warning(
                    "effect_saving_missing",
                    extra={"saving_id": str(saving_id)},
                )
                continue
            reversal = self._ledger.append(
                user_id,
                source=SavingSource.REVERSAL,
                credit=saving.debit_amount,
                debit=saving.credit_amount,
                reverses_saving_id=saving.id,
                description="Receivable reversal (no snapshot)",
                actor_id=actor_id,
            )
            reversal_ids.append(reversal.saving_id)
        return reversal_ids

    def _revert_collection(
        self,
        receivable: Receivable,
        effect: ReceivableEffect,
        now,
        actor_id: UUID | None,
    ) -> None:
        prev = effect.account_collection_prev_amount
        if effect.account_collection_id is not None:
            collection = self._get_locked(AccountCollection, effect.account_collection_id)
            if collection is None:
                logger.warning(
                    "effect_collection_missing",
                    extra={"collection_id": str(effect.account_collection_id)},
                )
                return
            if prev is not None:
                collection.amount = round_money(prev)
            else:
                collection.mark_deleted(now)
            collection.updated_by_id = actor_id
            return

        collection = self._active_collection(receivable.user_id, receivable.account_id)
        if collection is None:
            return
        if prev is not None:
            collection.amount = round_money(prev)
        else:
            collection.amount = round_money(collection.amount - receivable.amount_contributed)
            if abs(collection.amount) < MONEY_EPSILON:
                collection.mark_deleted(now)
        collection.updated_by_id = actor_id

    def _revert_debt(
        self,
        receivable: Receivable,
        effect: ReceivableEffect,
        now,
        actor_id: UUID | None,
    ) -> None:
        if effect.debt_id is None:
            return
        debt = self._get_locked(Debt, effect.debt_id)
        if debt is None or debt.is_deleted:
            logger.warning("effect_debt_missing", extra={"debt_id": str(effect.debt_id)})
            return

        if effect.debt_prev_outstanding is not None:
            debt.set_outstanding(effect.debt_prev_outstanding)
            if debt.outstanding_balance == ZERO:
                debt.debt_status = DebtStatus.CLEARED
            elif debt.debt_status == DebtStatus.CLEARED:
                debt.debt_status = DebtStatus.PENDING
        elif effect.debt_created_by_receivable:
            debt.mark_deleted(now)
        else:
            positive = abs(receivable.amount_contributed)
            if (
                debt.created_by_receivable_id in (None, receivable.id)
                and debt.outstanding_balance >= positive
            ):
                debt.set_outstanding(debt.outstanding_balance - positive)
                debt.recompute_status()
        debt.updated_by_id = actor_id

    # =========================================================================
    # Restore
    # =========================================================================

    def restore_effects_for_receivable(
        self, receivable: Receivable, actor_id: UUID | None = None
    ) -> EffectRestoreResult:
        with LogContext.bind(
            receivable_id=receivable.id,
            user_id=receivable.user_id,
            actor_id=actor_id,
            operation="restore_effects",
        ):
            with self.session.begin_nested():
                effect = self._latest_effect(receivable.id)
                if effect is None or not effect.reverted:
                    logger.info(
                        "effect_restore_skipped",
                        extra={"effect_id": str(effect.id) if effect else None},
                    )
                    return EffectRestoreResult(
                        effect_id=effect.id if effect else None, restored_now=False
                    )

                debt_restored = False
                restored_debt_id = None
                if effect.debt_created_by_receivable and effect.debt_id is not None:
                    debt = self._get_locked(Debt, effect.debt_id)
                    if debt is not None:
                        if debt.is_deleted:
                            debt.restore()
                            debt_restored = True
                        if effect.debt_prev_outstanding is not None:
                            debt.set_outstanding(effect.debt_prev_outstanding)
                        debt.recompute_status()
                        debt.updated_by_id = actor_id
                        restored_debt_id = debt.id

                collection = None
                collection_prev = None
                collection_restored = False
                if effect.account_collection_id is not None:
                    collection = self._get_locked(
                        AccountCollection, effect.account_collection_id
                    )
                    if collection is not None:
                        collection_prev = collection.amount
                        if collection.is_deleted:
                            collection.restore()
                            collection_restored = True
                        post = effect.account_collection_post_amount
                        if post is not None and not effect.best_effort:
                            collection.amount = round_money(post)
                        collection.updated_by_id = actor_id

                reversal_ids = ids_from_json(effect.reversal_saving_ids)
                if reversal_ids:
                    logger.warning(
                        "effect_restore_savings_skipped",
                        extra={
                            "effect_id": str(effect.id),
                            "reversal_saving_ids": [str(i) for i in reversal_ids],
                        },
                    )

                # The re-applied rows get their own revision so a later
                # delete reverts them again.  Savings are not re-applied.
                reapplied = ReceivableEffect(
                    receivable_id=receivable.id,
                    revision=self._next_revision(receivable.id),
                    user_id=effect.user_id,
                    account_id=effect.account_id,
                    account_collection_id=collection.id if collection is not None else None,
                    account_collection_prev_amount=(
                        None if collection_restored else collection_prev
                    ),
                    account_collection_post_amount=(
                        collection.amount if collection is not None else None
                    ),
                    saving_ids=[],
                    saving_snapshots=None,
                    debt_id=restored_debt_id,
                    debt_prev_outstanding=None,
                    debt_created_by_receivable=restored_debt_id is not None,
                    created_by_id=actor_id,
                )
                self.session.add(reapplied)
                self.session.flush()

            logger.info(
                "effect_restored",
                extra={
                    "effect_id": str(effect.id),
                    "reapplied_effect_id": str(reapplied.id),
                    "revision": reapplied.revision,
                    "collection_restored": collection_restored,
                    "debt_restored": debt_restored,
                    "savings_skipped": len(reversal_ids),
                },
            )
        return EffectRestoreResult(
            effect_id=effect.id,
            restored_now=True,
            collection_restored=collection_restored,
            debt_restored=debt_restored,
            savings_skipped=len(reversal_ids),
            reapplied_effect_id=reapplied.id,
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    def latest_effect(self, receivable_id: UUID) -> ReceivableEffect | None:
        """Latest effect for ``receivable_id`` without locking it."""
        return self.session.execute(
            select(ReceivableEffect)
            .where(ReceivableEffect.receivable_id == receivable_id)
            .order_by(ReceivableEffect.revision.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _latest_effect(self, receivable_id: UUID) -> ReceivableEffect | None:
        return self.session.execute(
            select(ReceivableEffect)
            .where(ReceivableEffect.receivable_id == receivable_id)
            .order_by(ReceivableEffect.revision.desc())
            .limit(1)
            .with_for_update()
        ).scalar_one_or_none()

    def _next_revision(self, receivable_id: UUID) -> int:
        current = self.session.execute(
            select(func.max(ReceivableEffect.revision)).where(
                ReceivableEffect.receivable_id == receivable_id
            )
        ).scalar_one()
        return (current or 0) + 1

    def _get_locked(self, model: type[ModelType], entity_id: UUID) -> ModelType | None:
        """Row by id regardless of lifecycle state, FOR UPDATE."""
        return self.session.execute(
            select(model).where(model.id == entity_id).with_for_update()
        ).scalar_one_or_none()
