"""Notification helpers used by the approval handlers.

    from signoff.core.notifications.notify import notify_users, email_users

    notify_users([1, 2, 3], 'New approval request', type='approval')
    email_users(smtp, [1, 2], 'Request approved', 'All approval steps completed')

Failures are logged and swallowed: a notification must never undo a
committed approval.
"""

import logging

from signoff.core.mail import send_email
from .in_app_repo import InAppNotificationRepository
from .user_directory import UserDirectory

logger = logging.getLogger('signoff.core.notifications.notify')

_repo = InAppNotificationRepository()
_directory = UserDirectory()


def notify_users(user_ids, title, message=None, link=None,
                 entity_type=None, entity_id=None, type='info'):
    """Send the same in-app notification to multiple users."""
    if not user_ids:
        return []
    try:
        return _repo.create_bulk(
            user_ids=list(user_ids), title=title, type=type,
            message=message, link=link,
            entity_type=entity_type, entity_id=entity_id,
        )
    except Exception as e:
        logger.error(f'Failed to create notifications for {len(user_ids)} users: {e}')
        return []


def email_users(smtp, user_ids, subject, body, link=None):
    """Email each user with a known address. Returns the number sent."""
    if not user_ids:
        return 0
    if not smtp.is_configured:
        logger.warning('Mail channel enabled but SMTP is not configured')
        return 0
    try:
        addresses = _directory.get_emails(list(user_ids))
    except Exception as e:
        logger.error(f'Failed to resolve email addresses for {len(user_ids)} users: {e}')
        return 0

    if link:
        body = f'{body}\n\n{link}'
    sent = 0
    for user_id in user_ids:
        address = addresses.get(user_id)
        if not address:
            logger.debug(f'No email address for user {user_id}')
            continue
        ok, _ = send_email(smtp, address, subject, body)
        sent += 1 if ok else 0
    return sent
