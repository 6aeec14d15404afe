"""
ORM-level append-only enforcement for the savings ledger.

SQLAlchemy fires mapper events before an UPDATE or DELETE reaches the
database.  The listeners below reject both for Saving rows:

    session.flush()
         |
         v
    [before_update] --> _check_saving_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_saving_delete() --------> ImmutabilityViolationError

A correction to the savings ledger is always a new, offsetting row.

Usage:

    from member_ledger.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # create_tables() calls this

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from member_ledger.exceptions import ImmutabilityViolationError
from member_ledger.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_saving_immutability(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Saving",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Saving",
        entity_id=str(target.id),
        reason="Saving rows are append-only and cannot be modified",
    )


def _check_saving_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Saving",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Saving",
        entity_id=str(target.id),
        reason="Saving rows are append-only and cannot be deleted",
    )


def register_immutability_listeners():
    """Register the Saving listeners.  Safe to call more than once."""
    from member_ledger.models.saving import Saving

    if not event.contains(Saving, "before_update", _check_saving_immutability):
        event.listen(Saving, "before_update", _check_saving_immutability)
    if not event.contains(Saving, "before_delete", _check_saving_delete):
        event.listen(Saving, "before_delete", _check_saving_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the listeners.

    WARNING: Only use this in tests that deliberately violate the rule.
    """
    from member_ledger.models.saving import Saving

    _safe_remove_listener(Saving, "before_update", _check_saving_immutability)
    _safe_remove_listener(Saving, "before_delete", _check_saving_delete)
