"""Read-only lookups against the host application's users table."""

from signoff.core.base_repository import BaseRepository


class UserDirectory(BaseRepository):

    def get_emails(self, user_ids):
        """Map user id -> email for active users among ``user_ids``."""
        if not user_ids:
            return {}
        rows = self.query_all('''
            SELECT id, email FROM users
            WHERE id = ANY(%s) AND is_active = TRUE AND email IS NOT NULL
        ''', (list(user_ids),))
        return {r['id']: r['email'] for r in rows}
