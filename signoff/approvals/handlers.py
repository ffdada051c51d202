"""Approval event handlers — notification fan-out.

Registered at app startup via register_approval_hooks(). Who is notified:
    approval.submitted / approval.advanced  → the event's pending approvers
    approval.approved / approval.rejected   → the creator
    approval.changes_requested              → the creator, with the fields to fix

Channels come from configuration (``in_app``, ``mail``). With
``NOTIFICATIONS_USE_QUEUE`` delivery runs on a worker pool so publishing
never blocks the caller.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from signoff.config import get_config
from signoff.core.notifications.notify import email_users, notify_users

from . import hooks
from .models import EventType

logger = logging.getLogger('signoff.approvals.handlers')


def _label(request) -> str:
    return f'{request.subject.type.replace("_", " ").title()} #{request.subject.id}'


class NotificationDispatcher:

    def __init__(self, config=None, executor=None):
        self._config = config or get_config()
        self._executor = executor
        self._handlers = {
            EventType.REQUEST_SUBMITTED: self._on_submitted,
            EventType.APPROVAL_ADVANCED: self._on_advanced,
            EventType.REQUEST_APPROVED: self._on_approved,
            EventType.REQUEST_REJECTED: self._on_rejected,
            EventType.CHANGES_REQUESTED: self._on_changes_requested,
        }

    def register(self):
        for event_type, handler in self._handlers.items():
            hooks.on(event_type, handler)
        logger.info(f'Approval notification hooks registered '
                    f'(channels={",".join(self._config.NOTIFICATION_CHANNELS)}, '
                    f'queued={self._config.NOTIFICATIONS_USE_QUEUE})')

    def unregister(self):
        for event_type, handler in self._handlers.items():
            hooks.off(event_type, handler)

    def shutdown(self, wait=True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    # ── Handlers ──

    def _on_submitted(self, event):
        request = event.request
        self._deliver(
            event.recipients,
            f'New approval request: {_label(request)}',
            'Please review and approve.',
            request,
        )

    def _on_advanced(self, event):
        request = event.request
        self._deliver(
            event.recipients,
            'Approval request awaiting your review',
            f'{_label(request)}: level {request.current_level}',
            request,
        )

    def _on_approved(self, event):
        msg = 'Auto-approved' if event.auto_approved else 'All approval steps completed'
        self._deliver(event.recipients, f'{_label(event.request)} approved', msg, event.request)

    def _on_rejected(self, event):
        self._deliver(event.recipients, f'{_label(event.request)} rejected',
                      'Your request was rejected.', event.request)

    def _on_changes_requested(self, event):
        request = event.request
        msg = 'Please review the request, make the necessary adjustments, and resubmit.'
        if request.requested_changes:
            msg = f'Please update the following fields: {", ".join(request.requested_changes)}. {msg}'
        self._deliver(event.recipients, f'Changes requested: {_label(request)}', msg, request)

    # ── Delivery ──

    def _deliver(self, recipients, title, message, request):
        if not self._config.NOTIFICATIONS_ENABLED or not recipients:
            return
        recipients = sorted(recipients, key=str)
        if self._config.NOTIFICATIONS_USE_QUEUE:
            self._pool().submit(self._send, recipients, title, message, request)
        else:
            self._send(recipients, title, message, request)

    def _send(self, recipients, title, message, request):
        link = self._config.link(f'/approvals/{request.id}' if request.id else '/approvals')
        for channel in self._config.NOTIFICATION_CHANNELS:
            try:
                if channel == 'in_app':
                    notify_users(
                        recipients, title, message=message, link=link,
                        entity_type=request.subject.type, entity_id=request.subject.id,
                        type='approval',
                    )
                elif channel == 'mail':
                    email_users(self._config.SMTP, recipients, title, message, link=link)
            except Exception as e:
                logger.error(f'Notification channel {channel} failed for request {request.id}: {e}',
                             exc_info=True)

    def _pool(self):
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._config.NOTIFICATION_WORKERS,
                thread_name_prefix='signoff-notify',
            )
        return self._executor


def register_approval_hooks(config=None):
    """Register all approval notification handlers. Call once at app startup."""
    dispatcher = NotificationDispatcher(config)
    dispatcher.register()
    return dispatcher
