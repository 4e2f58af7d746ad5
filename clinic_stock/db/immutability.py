"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement ledger is append-only: current stock must always be
reconcilable with the sum of all movements, so a movement row may never be
edited or removed once written.  Users carry a creation timestamp and a
legajo that are fixed for life.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below intercept them:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
    [before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity        | Rule
--------------|------------------------------------------------------------
MovementModel | No UPDATE, no DELETE, ever
UserModel     | legajo and created_at never change; no hard DELETE
              | (soft delete only)

===============================================================================
USAGE
===============================================================================

Registered by ``create_tables()``; idempotent.  Tests that need to prove a
raw write is blocked call ``register_immutability_listeners()`` directly.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from clinic_stock.exceptions import ImmutabilityViolationError
from clinic_stock.logging_config import get_logger

logger = get_logger("db.immutability")

_registered = False


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(entity_type, str(entity_id), reason)


def _check_movement_update(mapper, connection, target):
    raise _blocked("Movement", target.id, "UPDATE", "movements are append-only")


def _check_movement_delete(mapper, connection, target):
    raise _blocked("Movement", target.id, "DELETE", "movements are append-only")


def _check_user_update(mapper, connection, target):
    for field in ("legajo", "created_at"):
        history = get_history(target, field)
        if history.deleted:
            raise _blocked(
                "User", target.legajo, "UPDATE", f"{field} cannot be changed"
            )


def _check_user_delete(mapper, connection, target):
    raise _blocked("User", target.legajo, "DELETE", "users are soft-deleted only")


def _listeners():
    from clinic_stock.models.movement import MovementModel
    from clinic_stock.models.user import UserModel

    return [
        (MovementModel, "before_update", _check_movement_update),
        (MovementModel, "before_delete", _check_movement_delete),
        (UserModel, "before_update", _check_user_update),
        (UserModel, "before_delete", _check_user_delete),
    ]


def register_immutability_listeners() -> None:
    """Install the mapper listeners (idempotent)."""
    global _registered
    if _registered:
        return
    for model, name, fn in _listeners():
        event.listen(model, name, fn)
    _registered = True
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the mapper listeners. FOR TESTING ONLY."""
    global _registered
    if not _registered:
        return
    for model, name, fn in _listeners():
        if event.contains(model, name, fn):
            event.remove(model, name, fn)
    _registered = False
