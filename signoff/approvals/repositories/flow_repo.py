"""Repository for approval_flows and approval_flow_steps tables."""

import json
import logging

from signoff.core.base_repository import BaseRepository
from ..models import Flow, Step

logger = logging.getLogger('signoff.approvals.flow_repo')


def _row_to_step(row) -> Step:
    return Step(
        id=row['id'],
        flow_id=row['flow_id'],
        level=row['level'],
        approvers=row.get('approvers') or (),
        approver_id=row.get('approver_id'),
        role_id=row.get('role_id'),
        strategy=row.get('strategy') or 'any',
        action=row.get('action') or 'approve',
    )


def _row_to_flow(row, steps=()) -> Flow:
    return Flow(
        id=row['id'],
        name=row.get('name') or '',
        description=row.get('description'),
        action_type=row['action_type'],
        tenant_id=row.get('tenant_id'),
        is_active=row.get('is_active', True),
        condition_key=row.get('condition_key'),
        condition_params=row.get('condition_params') or {},
        steps=tuple(steps),
    )


class FlowRepository(BaseRepository):

    # ── Flows ──

    def find_active_flow(self, action_type, tenant_id=None, cursor=None):
        """Active flow for an action type, with steps. Tenant filter only when given."""
        sql = '''
            SELECT * FROM approval_flows
            WHERE action_type = %s AND is_active = TRUE AND deleted_at IS NULL
        '''
        params = [action_type]
        if tenant_id is not None:
            sql += ' AND tenant_id = %s'
            params.append(tenant_id)
        sql += ' ORDER BY id LIMIT 1'

        row = self.query_one(sql, params, cursor=cursor)
        if not row:
            return None
        return _row_to_flow(row, self.get_steps_for_flow(row['id'], cursor=cursor))

    def get_flow(self, flow_id, cursor=None):
        """Flow with embedded steps, active or not."""
        row = self.query_one(
            'SELECT * FROM approval_flows WHERE id = %s', (flow_id,), cursor=cursor)
        if not row:
            return None
        return _row_to_flow(row, self.get_steps_for_flow(flow_id, cursor=cursor))

    def create_flow(self, name, action_type, tenant_id=None, **kwargs):
        row = self.execute('''
            INSERT INTO approval_flows (name, description, action_type, tenant_id,
                is_active, condition_key, condition_params)
            VALUES (%s, %s, %s, %s, %s, %s, %s::jsonb)
            RETURNING id
        ''', (
            name, kwargs.get('description'), action_type, tenant_id,
            kwargs.get('is_active', True),
            kwargs.get('condition_key'),
            json.dumps(kwargs.get('condition_params') or {}),
        ), returning=True)
        return row['id'] if row else None

    def update_flow(self, flow_id, **kwargs):
        allowed = {
            'name', 'description', 'action_type', 'tenant_id', 'is_active',
            'condition_key', 'condition_params',
        }
        updates = []
        params = []
        for key, val in kwargs.items():
            if key not in allowed:
                continue
            if key == 'condition_params':
                updates.append(f'{key} = %s::jsonb')
                params.append(json.dumps(val or {}))
            else:
                updates.append(f'{key} = %s')
                params.append(val)
        if not updates:
            return False
        updates.append('updated_at = NOW()')
        params.append(flow_id)
        return self.execute(
            f'UPDATE approval_flows SET {", ".join(updates)} WHERE id = %s', params
        ) > 0

    def deactivate_flow(self, flow_id):
        return self.update_flow(flow_id, is_active=False)

    # ── Steps ──

    def get_steps_for_flow(self, flow_id, cursor=None):
        rows = self.query_all('''
            SELECT * FROM approval_flow_steps
            WHERE flow_id = %s
            ORDER BY level
        ''', (flow_id,), cursor=cursor)
        return [_row_to_step(r) for r in rows]

    def create_step(self, flow_id, level, approvers=None, approver_id=None,
                    strategy='any', **kwargs):
        """Add a level. ``approvers`` is the set form, ``approver_id`` the legacy single form."""
        strategy_value = getattr(strategy, 'value', strategy)
        row = self.execute('''
            INSERT INTO approval_flow_steps (flow_id, level, approvers, approver_id,
                role_id, strategy, action)
            VALUES (%s, %s, %s::jsonb, %s, %s, %s, %s)
            RETURNING id
        ''', (
            flow_id, level,
            json.dumps(sorted(approvers, key=str)) if approvers else None,
            approver_id,
            kwargs.get('role_id'),
            strategy_value,
            kwargs.get('action', 'approve'),
        ), returning=True)
        return row['id'] if row else None

    def delete_step(self, step_id):
        return self.execute(
            'DELETE FROM approval_flow_steps WHERE id = %s', (step_id,)
        ) > 0
