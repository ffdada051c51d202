"""Simple in-process callback registry for approval events.

Usage:
    from signoff.approvals import hooks
    from signoff.approvals.models import EventType

    # Register handler
    hooks.on(EventType.REQUEST_APPROVED, my_handler)
    hooks.on('*', audit_everything)

    # Publish (called by ApprovalService after commit)
    hooks.fire(event)

Callbacks receive the ``ApprovalEvent``. Events:
    approval.submitted         — request created, pending approvers to notify
    approval.advanced          — moved to next level, or rerouted
    approval.approved          — final approval (or auto-approval)
    approval.rejected          — rejected at any level
    approval.changes_requested — returned to the creator
    approval.approver_removed  — approver excluded from the request
    approval.skipped           — condition said approval not required
"""

import logging

logger = logging.getLogger('signoff.approvals.hooks')

WILDCARD = '*'

_registry: dict[str, list] = {}


def _key(event_type) -> str:
    return getattr(event_type, 'value', event_type)


def on(event_type, callback):
    """Register a callback for an event type (EventType, its value, or '*')."""
    _registry.setdefault(_key(event_type), []).append(callback)
    logger.debug(f"Registered hook for {_key(event_type)}: {getattr(callback, '__name__', callback)}")


def off(event_type, callback):
    """Unregister a callback. Unknown callbacks are ignored."""
    callbacks = _registry.get(_key(event_type), [])
    if callback in callbacks:
        callbacks.remove(callback)


def fire(event):
    """Call every callback registered for the event's type, then wildcard callbacks.

    A failing callback is logged and does not stop the others: delivery is
    the sink's concern, the transition is already committed.
    """
    event_type = _key(event.type)
    callbacks = list(_registry.get(event_type, [])) + list(_registry.get(WILDCARD, []))
    for cb in callbacks:
        try:
            cb(event)
        except Exception as e:
            logger.error(f"Hook error for {event_type} in {getattr(cb, '__name__', cb)}: {e}",
                         exc_info=True)


def clear(event_type=None):
    """Clear hooks. If event_type given, clear only that type. Used in tests."""
    if event_type:
        _registry.pop(_key(event_type), None)
    else:
        _registry.clear()
