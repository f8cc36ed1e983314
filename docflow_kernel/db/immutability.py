"""
ORM-Level Immutability Enforcement for the transition log.

===============================================================================
WHY THIS EXISTS
===============================================================================

A document's status is derived from its transition log.  If a row of that
log could be edited or removed, the derived status and the audit timeline
would silently change.  These listeners make the log append-only for all
code that goes through SQLAlchemy's unit of work:

    session.flush()
         |
         v
    [before_update event] --> _check_transition_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_transition_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable          | Why
------------------|-------------------------|----------------------------------
TransitionRecord  | ALWAYS (from creation)  | The log is the source of truth
DocumentHead      | Never deletable         | Losing it hides the latest event

DocumentHead rows are updated (moved forward) by TransitionLog.append()
through a Core UPDATE, which does not go through these listeners.

WorkflowGateway registers the listeners when it is constructed; code that
uses the kernel services directly calls register_immutability_listeners().
"""

from sqlalchemy import event

from docflow_kernel.exceptions import ImmutabilityViolationError
from docflow_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_transition_immutability(mapper, connection, target):
    """Prevent any updates to TransitionRecord rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TransitionRecord",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TransitionRecord",
        entity_id=str(target.id),
        reason="Transitions are immutable and cannot be modified",
    )


def _check_transition_delete(mapper, connection, target):
    """Prevent deletion of TransitionRecord rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TransitionRecord",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TransitionRecord",
        entity_id=str(target.id),
        reason="Transitions cannot be deleted",
    )


def _check_head_delete(mapper, connection, target):
    """Prevent deletion of DocumentHead rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "DocumentHead",
            "entity_id": str(target.document_id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="DocumentHead",
        entity_id=str(target.document_id),
        reason="Document heads cannot be deleted",
    )


def _listeners():
    from docflow_kernel.models.document_head import DocumentHead
    from docflow_kernel.models.transition import TransitionRecord

    return (
        (TransitionRecord, "before_update", _check_transition_immutability),
        (TransitionRecord, "before_delete", _check_transition_delete),
        (DocumentHead, "before_delete", _check_head_delete),
    )


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Call this during application initialization, after models are imported
    and before any database operations begin.  Idempotent.
    """
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
