"""
ORM-Level Immutability Enforcement for the stock ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

The stock ledger is the audit trail behind every product quantity.  Replaying
it must reproduce the current quantity, which only holds if rows are never
edited or removed after they are written.  Corrections are new movements
(an ``adjustment``), never edits of old ones.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database:

    session.flush()
         |
         v
    [before_update event] --> _check_movement_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_movement_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush aborts and the database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable          | Why
----------------|-------------------------|----------------------------------
StockMovement   | ALWAYS (from creation)  | Ledger replay must match quantity

===============================================================================
USAGE
===============================================================================

Called once at application startup, after models are imported:

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

Bulk ``UPDATE``/``DELETE`` statements bypass ORM events; services never issue
them against stock_movements.
"""

from sqlalchemy import event

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_movement_update(mapper, connection, target):
    """Prevent any updates to StockMovement records."""
    from sqlalchemy import inspect

    changed = [
        attr.key for attr in inspect(target).attrs if attr.history.has_changes()
    ]
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockMovement",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Stock movements are append-only and cannot be modified",
    )


def _check_movement_delete(mapper, connection, target):
    """Prevent deletion of StockMovement records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockMovement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Stock movements cannot be deleted",
    )


def register_immutability_listeners() -> None:
    """
    Register the ledger immutability listeners.

    Idempotent: listeners already present are not added twice.
    """
    from stock_kernel.models.stock_movement import StockMovement

    for event_name, listener in (
        ("before_update", _check_movement_update),
        ("before_delete", _check_movement_delete),
    ):
        if not event.contains(StockMovement, event_name, listener):
            event.listen(StockMovement, event_name, listener)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the ledger immutability listeners.

    WARNING: Only use this in tests that must violate immutability on purpose.
    """
    from stock_kernel.models.stock_movement import StockMovement

    _safe_remove_listener(StockMovement, "before_update", _check_movement_update)
    _safe_remove_listener(StockMovement, "before_delete", _check_movement_delete)
