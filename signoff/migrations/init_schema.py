"""Database schema initialization.

CREATE TABLE / CREATE INDEX statements for the approval workflow tables
and the in-app notification table. Every statement is idempotent so
init_db() can run on each start.

User ids are integers owned by the host application's ``users`` table;
approver sets are JSONB arrays of those ids.
"""
import logging

from signoff.core.database import get_cursor, transaction

logger = logging.getLogger('signoff.migrations')


def create_schema(cursor):
    """Create all tables and indexes.

    Args:
        cursor: Database cursor inside an open transaction
    """
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_flows (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            action_type TEXT NOT NULL,
            tenant_id BIGINT,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            condition_key TEXT,
            condition_params JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_flows_action ON approval_flows(action_type)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_flows_tenant ON approval_flows(tenant_id)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_flow_steps (
            id SERIAL PRIMARY KEY,
            flow_id INTEGER NOT NULL REFERENCES approval_flows(id) ON DELETE CASCADE,
            level INTEGER NOT NULL DEFAULT 1,
            role_id BIGINT,
            approver_id BIGINT,
            approvers JSONB,
            strategy TEXT NOT NULL DEFAULT 'any',
            action TEXT NOT NULL DEFAULT 'approve',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_approval_flow_steps_level UNIQUE (flow_id, level),
            CONSTRAINT chk_approval_step_strategy CHECK (strategy IN ('any', 'all'))
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_requests (
            id SERIAL PRIMARY KEY,
            flow_id INTEGER REFERENCES approval_flows(id) ON DELETE CASCADE,
            subject_type TEXT NOT NULL,
            subject_id TEXT NOT NULL,
            current_level INTEGER NOT NULL DEFAULT 1,
            status TEXT NOT NULL DEFAULT 'pending',
            creator_id BIGINT,
            tenant_id BIGINT,
            current_approver_id BIGINT,
            pending_approvers JSONB NOT NULL DEFAULT '[]',
            approved_by JSONB NOT NULL DEFAULT '[]',
            removed_approvers JSONB NOT NULL DEFAULT '[]',
            requested_changes JSONB NOT NULL DEFAULT '[]',
            metadata JSONB NOT NULL DEFAULT '{}',
            approved_at TIMESTAMPTZ,
            rejected_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            deleted_at TIMESTAMPTZ,
            CONSTRAINT chk_approval_request_status CHECK (
                status IN ('pending', 'approved', 'rejected', 'skipped', 'returned'))
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_requests_subject ON approval_requests(subject_type, subject_id, status)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_requests_pending ON approval_requests USING GIN (pending_approvers)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_request_logs (
            id SERIAL PRIMARY KEY,
            request_id INTEGER NOT NULL REFERENCES approval_requests(id) ON DELETE CASCADE,
            user_id BIGINT,
            action TEXT NOT NULL,
            comment TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_request_logs_request ON approval_request_logs(request_id)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS notifications (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            type TEXT NOT NULL DEFAULT 'info',
            title TEXT NOT NULL,
            message TEXT,
            link TEXT,
            entity_type TEXT,
            entity_id TEXT,
            is_read BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_notifications_user_unread ON notifications(user_id, is_read)')


def init_db():
    """Create the schema in one transaction."""
    with transaction() as conn:
        create_schema(get_cursor(conn))
    logger.info('Approval workflow schema initialized')
