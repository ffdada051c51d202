"""Repository for approval_requests table.

Approver sets are stored as JSONB arrays; the legacy
``current_approver_id`` column is written alongside for older readers.
"""

import json
import logging

from signoff.core.base_repository import BaseRepository
from ..models import ApprovalRequest, SubjectRef

logger = logging.getLogger('signoff.approvals.request_repo')

_OPEN_STATUSES = ('pending', 'returned')


def _json_ids(ids):
    return json.dumps(sorted(ids, key=str))


def _row_to_request(row) -> ApprovalRequest:
    return ApprovalRequest(
        id=row['id'],
        flow_id=row.get('flow_id'),
        subject=SubjectRef(row['subject_type'], row['subject_id']),
        current_level=row['current_level'],
        status=row['status'],
        creator_id=row.get('creator_id'),
        tenant_id=row.get('tenant_id'),
        pending_approvers=row.get('pending_approvers') or (),
        approved_by=row.get('approved_by') or (),
        removed_approvers=row.get('removed_approvers') or (),
        requested_changes=row.get('requested_changes') or (),
        metadata=row.get('metadata') or {},
        current_approver_id=row.get('current_approver_id'),
        approved_at=row.get('approved_at'),
        rejected_at=row.get('rejected_at'),
        created_at=row.get('created_at'),
        updated_at=row.get('updated_at'),
    )


class RequestRepository(BaseRepository):

    def get_by_id(self, request_id, cursor=None, for_update=False):
        """Load a request. ``for_update`` locks the row until the transaction ends."""
        sql = 'SELECT * FROM approval_requests WHERE id = %s AND deleted_at IS NULL'
        if for_update:
            sql += ' FOR UPDATE'
        row = self.query_one(sql, (request_id,), cursor=cursor)
        return _row_to_request(row) if row else None

    def get_by_subject(self, subject: SubjectRef):
        """All requests for a subject, newest first."""
        rows = self.query_all('''
            SELECT * FROM approval_requests
            WHERE subject_type = %s AND subject_id = %s AND deleted_at IS NULL
            ORDER BY created_at DESC, id DESC
        ''', (subject.type, str(subject.id)))
        return [_row_to_request(r) for r in rows]

    def get_latest_for_subject(self, subject: SubjectRef):
        row = self.query_one('''
            SELECT * FROM approval_requests
            WHERE subject_type = %s AND subject_id = %s AND deleted_at IS NULL
            ORDER BY created_at DESC, id DESC
            LIMIT 1
        ''', (subject.type, str(subject.id)))
        return _row_to_request(row) if row else None

    def get_pending_for_user(self, user_id, subject_type=None):
        """Open requests where user_id is still owed a vote."""
        sql = '''
            SELECT * FROM approval_requests
            WHERE status IN %s AND deleted_at IS NULL
            AND (pending_approvers @> %s::jsonb OR current_approver_id = %s)
        '''
        params = [_OPEN_STATUSES, json.dumps([user_id]), user_id]
        if subject_type:
            sql += ' AND subject_type = %s'
            params.append(subject_type)
        sql += ' ORDER BY created_at'
        return [_row_to_request(r) for r in self.query_all(sql, params)]

    def create(self, request: ApprovalRequest, cursor=None):
        row = self.execute('''
            INSERT INTO approval_requests
                (flow_id, subject_type, subject_id, current_level, status, creator_id,
                 tenant_id, current_approver_id, pending_approvers, approved_by,
                 removed_approvers, requested_changes, metadata, approved_at, rejected_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s::jsonb,
                    %s::jsonb, %s::jsonb, %s::jsonb, %s, %s)
            RETURNING id
        ''', (
            request.flow_id, request.subject.type, str(request.subject.id),
            request.current_level, request.status.value, request.creator_id,
            request.tenant_id, request.current_approver_id,
            _json_ids(request.pending_approvers),
            _json_ids(request.approved_by),
            _json_ids(request.removed_approvers),
            json.dumps(list(request.requested_changes)),
            json.dumps(request.metadata or {}),
            request.approved_at, request.rejected_at,
        ), returning=True, cursor=cursor)
        return row['id'] if row else None

    def update(self, request: ApprovalRequest, cursor=None):
        """Write every mutable column of the snapshot."""
        return self.execute('''
            UPDATE approval_requests SET
                current_level = %s, status = %s, current_approver_id = %s,
                pending_approvers = %s::jsonb, approved_by = %s::jsonb,
                removed_approvers = %s::jsonb, requested_changes = %s::jsonb,
                metadata = %s::jsonb, approved_at = %s, rejected_at = %s,
                updated_at = NOW()
            WHERE id = %s
        ''', (
            request.current_level, request.status.value, request.current_approver_id,
            _json_ids(request.pending_approvers),
            _json_ids(request.approved_by),
            _json_ids(request.removed_approvers),
            json.dumps(list(request.requested_changes)),
            json.dumps(request.metadata or {}),
            request.approved_at, request.rejected_at,
            request.id,
        ), cursor=cursor) > 0

    def retire(self, request_id, cursor=None):
        """Soft-delete a request. Rows are never hard-deleted."""
        return self.execute(
            'UPDATE approval_requests SET deleted_at = NOW() WHERE id = %s AND deleted_at IS NULL',
            (request_id,), cursor=cursor,
        ) > 0
