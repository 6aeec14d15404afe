"""
ReceivableService -- entry point for creating, deleting and restoring
receivables.

Responsibility:
    create_receivable() posts the receivable and records its effect in one
    SAVEPOINT.  safe_delete() reverts the effect and then soft-deletes the
    receivable; safe_restore() restores the receivable and then re-applies
    what the effect allows.  Handlers call these instead of deleting rows.

Architecture position:
    Ledger > Services -- orchestrator over ReceivablePostingService and
    ReceivableEffectService.

Invariants enforced:
    - Each operation is atomic.  If reversal fails the receivable is not
      deleted; if restore fails it stays deleted.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy.orm import Session

from member_ledger.config import LedgerSettings, get_active_config
from member_ledger.domain.clock import Clock, SystemClock
from member_ledger.domain.enums import PaymentMode
from member_ledger.logging_config import LogContext, get_logger
from member_ledger.models.receivable import Receivable
from member_ledger.services.base import BaseService
from member_ledger.services.receivable_effect_service import (
    EffectRestoreResult,
    EffectReversalResult,
    ReceivableEffectService,
)
from member_ledger.services.receivable_posting import (
    ReceivablePosting,
    ReceivablePostingService,
)
from member_ledger.services.savings_ledger import SavingsLedger

logger = get_logger("services.receivable")


class ReceivableService(BaseService):
    """
    Contract:
        Flushes only.  The caller's session_scope() commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        settings = settings or get_active_config()
        ledger = SavingsLedger(session)
        self._posting = ReceivablePostingService(session, ledger=ledger)
        self._effects = ReceivableEffectService(
            session, clock=self._clock, settings=settings, ledger=ledger
        )

    @property
    def effects(self) -> ReceivableEffectService:
        return self._effects

    def create_receivable(
        self,
        user_id: UUID,
        account_id: UUID,
        amount,
        from_savings: bool = False,
        payment_method: PaymentMode | str | None = None,
        actor_id: UUID | None = None,
    ) -> ReceivablePosting:
        with self.session.begin_nested():
            posting = self._posting.post_receivable(
                user_id,
                account_id,
                amount,
                from_savings=from_savings,
                payment_method=payment_method,
                actor_id=actor_id,
            )
            effect = self._effects.record_creation_effects(
                posting.receivable,
                applied=posting.applied,
                debt_created_by_receivable=posting.applied.debt_created,
                actor_id=actor_id,
            )
        return replace(posting, effect=effect)

    def safe_delete(
        self, receivable: Receivable | UUID, actor_id: UUID | None = None
    ) -> EffectReversalResult:
        receivable_id = receivable.id if isinstance(receivable, Receivable) else receivable
        with LogContext.bind(
            receivable_id=receivable_id, actor_id=actor_id, operation="safe_delete"
        ):
            with self.session.begin_nested():
                row = self._load(Receivable, receivable_id, lock=True)
                result = self._effects.revert_effects_for_receivable(row, actor_id=actor_id)
                row.mark_deleted(self._clock.now())
                row.updated_by_id = actor_id
                self.session.flush()

            logger.info(
                "receivable_deleted",
                extra={
                    "effect_id": str(result.effect_id) if result.effect_id else None,
                    "reverted_now": result.reverted_now,
                    "best_effort": result.best_effort,
                },
            )
        return result

    def safe_restore(
        self, receivable: Receivable | UUID, actor_id: UUID | None = None
    ) -> EffectRestoreResult:
        receivable_id = receivable.id if isinstance(receivable, Receivable) else receivable
        with LogContext.bind(
            receivable_id=receivable_id, actor_id=actor_id, operation="safe_restore"
        ):
            with self.session.begin_nested():
                row = self._load(Receivable, receivable_id, lock=True, include_deleted=True)
                row.restore()
                row.updated_by_id = actor_id
                self.session.flush()
                result = self._effects.restore_effects_for_receivable(row, actor_id=actor_id)

            logger.info(
                "receivable_restored",
                extra={
                    "effect_id": str(result.effect_id) if result.effect_id else None,
                    "restored_now": result.restored_now,
                },
            )
        return result
