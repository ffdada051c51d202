"""In-app notification repository.

CRUD for the `notifications` table, the notification center approvers and
creators see in the host application.
"""

import logging
from signoff.core.base_repository import BaseRepository

logger = logging.getLogger('signoff.core.notifications.in_app_repo')


class InAppNotificationRepository(BaseRepository):

    def create_bulk(self, user_ids, title, type='info', message=None, link=None,
                    entity_type=None, entity_id=None):
        """Create the same notification for multiple users. Returns the new ids."""
        if not user_ids:
            return []
        entity_id = str(entity_id) if entity_id is not None else None

        def _work(cursor):
            ids = []
            for uid in user_ids:
                cursor.execute('''
                    INSERT INTO notifications (user_id, type, title, message, link, entity_type, entity_id)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                ''', (uid, type, title, message, link, entity_type, entity_id))
                ids.append(cursor.fetchone()['id'])
            return ids
        return self.execute_many(_work)

    def get_for_user(self, user_id, limit=20, offset=0, unread_only=False):
        """Notifications for a user, newest first."""
        where = 'WHERE user_id = %s'
        params = [user_id]
        if unread_only:
            where += ' AND is_read = FALSE'
        params.extend([limit, offset])
        return self.query_all(f'''
            SELECT * FROM notifications
            {where}
            ORDER BY created_at DESC
            LIMIT %s OFFSET %s
        ''', params)
