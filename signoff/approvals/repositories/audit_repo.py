"""Repository for approval_request_logs table. Append-only."""

import logging

from signoff.core.base_repository import BaseRepository
from ..models import AuditLogEntry

logger = logging.getLogger('signoff.approvals.audit_repo')


class AuditRepository(BaseRepository):

    def log(self, request_id, entry: AuditLogEntry, cursor=None):
        """Append an entry to the audit log."""
        row = self.execute('''
            INSERT INTO approval_request_logs (request_id, user_id, action, comment)
            VALUES (%s, %s, %s, %s)
            RETURNING id
        ''', (request_id, entry.actor_id, entry.action.value, entry.comment),
            returning=True, cursor=cursor)
        return row['id'] if row else None

    def get_for_request(self, request_id):
        rows = self.query_all('''
            SELECT * FROM approval_request_logs
            WHERE request_id = %s
            ORDER BY created_at, id
        ''', (request_id,))
        return [
            AuditLogEntry(
                id=r['id'], request_id=r['request_id'], actor_id=r.get('user_id'),
                action=r['action'], comment=r.get('comment'), created_at=r.get('created_at'),
            )
            for r in rows
        ]
