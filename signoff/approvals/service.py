"""ApprovalService — transactional wrapper around ApprovalEngine.

All approval state changes flow through this class. Consuming modules
NEVER write approval tables directly.

Every operation is one unit of work:
    1. open a transaction and load the request with a row lock
    2. let the engine compute the transition
    3. persist the new snapshot and audit entries
    4. commit, then publish events through hooks

Concurrent votes on the same request serialize on the row lock
(SELECT ... FOR UPDATE). Storage errors propagate unchanged.
"""

import logging
from dataclasses import replace

from signoff.config import get_config
from signoff.core.database import get_cursor, transaction
from signoff.core.logging_config import log_with_context

from . import hooks
from .engine import ApprovalEngine
from .exceptions import InvalidState, RequestNotFound
from .models import SubjectRef
from .repositories import AuditRepository, FlowRepository, RequestRepository

logger = logging.getLogger('signoff.approvals.service')


class ApprovalService:

    def __init__(self, engine=None, config=None):
        self._config = config or get_config()
        self._engine = engine or ApprovalEngine(config=self._config)
        self._flow_repo = FlowRepository()
        self._request_repo = RequestRepository()
        self._audit_repo = AuditRepository()

    # ════════════════════════════════════════════
    # Public API
    # ════════════════════════════════════════════

    def submit(self, subject, action_type, tenant_id=None, creator_id=None,
               metadata=None, attributes=None):
        """Submit a subject for approval under the active flow for ``action_type``.

        ``tenant_id`` falls back to the subject's own ``tenant_id`` attribute.
        """
        if tenant_id is None:
            if isinstance(subject, dict):
                tenant_id = subject.get('tenant_id')
            else:
                tenant_id = getattr(subject, 'tenant_id', None)

        with transaction() as conn:
            cursor = get_cursor(conn)
            flow = self._flow_repo.find_active_flow(action_type, tenant_id, cursor=cursor)
            transition = self._engine.submit(
                flow, subject, creator_id=creator_id, metadata=metadata,
                attributes=attributes, action_type=action_type, tenant_id=tenant_id,
            )
            request = transition.request
            request_id = self._request_repo.create(request, cursor=cursor)
            request = request.evolve(id=request_id)
            for entry in transition.audit_entries:
                self._audit_repo.log(request_id, entry, cursor=cursor)

        events = [replace(e, request=e.request.evolve(id=request_id)) for e in transition.events]
        self._committed('submit', request)
        self._publish(events)
        return request

    def approve(self, request_id, actor_id, comment=None, on_complete=None):
        """Cast an approving vote.

        ``on_complete`` is called once with the committed request. Its
        exceptions reach the caller; the transition stays committed.
        """
        request = self._apply(
            request_id, 'approve',
            lambda req, flow: self._engine.approve(req, flow, actor_id, comment),
        )
        if on_complete is not None:
            on_complete(request)
        return request

    def reject(self, request_id, actor_id, comment=None):
        return self._apply(
            request_id, 'reject',
            lambda req, flow: self._engine.reject(req, actor_id, comment),
        )

    def request_changes(self, request_id, actor_id, fields=(), comment=None):
        return self._apply(
            request_id, 'request_changes',
            lambda req, flow: self._engine.request_changes(req, actor_id, fields, comment),
        )

    def remove_approver(self, request_id, approver_id, admin_id):
        return self._apply(
            request_id, 'remove_approver',
            lambda req, flow: self._engine.remove_approver(req, flow, approver_id, admin_id),
        )

    def reroute(self, request_id, old_approver_id, new_approver_id, admin_id):
        return self._apply(
            request_id, 'reroute',
            lambda req, flow: self._engine.reroute(req, old_approver_id, new_approver_id, admin_id),
        )

    def retire(self, request_id):
        """Soft-delete a finished request."""
        with transaction() as conn:
            cursor = get_cursor(conn)
            request = self._request_repo.get_by_id(request_id, cursor=cursor, for_update=True)
            if request is None:
                raise RequestNotFound(request_id)
            if not request.is_terminal:
                raise InvalidState(request_id, request.status, 'retire')
            retired = self._request_repo.retire(request_id, cursor=cursor)
        self._committed('retire', request)
        return retired

    # ── Queries ──

    def get_request(self, request_id):
        request = self._request_repo.get_by_id(request_id)
        if request is None:
            raise RequestNotFound(request_id)
        return request

    def get_latest_for_subject(self, subject):
        return self._request_repo.get_latest_for_subject(SubjectRef.of(subject))

    def get_history_for_subject(self, subject):
        """Every request for a subject, newest first."""
        return self._request_repo.get_by_subject(SubjectRef.of(subject))

    def get_pending_for_user(self, user_id, subject_type=None):
        """Requests waiting on this user's vote."""
        return self._request_repo.get_pending_for_user(user_id, subject_type)

    def get_audit_log(self, request_id):
        return self._audit_repo.get_for_request(request_id)

    # ════════════════════════════════════════════
    # Internal
    # ════════════════════════════════════════════

    def _apply(self, request_id, action, operate):
        with transaction() as conn:
            cursor = get_cursor(conn)
            request = self._request_repo.get_by_id(request_id, cursor=cursor, for_update=True)
            if request is None:
                raise RequestNotFound(request_id)
            flow = None
            if request.flow_id is not None:
                flow = self._flow_repo.get_flow(request.flow_id, cursor=cursor)

            transition = operate(request, flow)

            self._request_repo.update(transition.request, cursor=cursor)
            for entry in transition.audit_entries:
                self._audit_repo.log(request.id, entry, cursor=cursor)

        self._committed(action, transition.request)
        self._publish(transition.events)
        return transition.request

    def _committed(self, action, request):
        log_with_context(
            logger, logging.INFO, f'Approval {action} committed',
            request_id=request.id, status=request.status.value,
            current_level=request.current_level,
        )

    def _publish(self, events):
        for event in events:
            hooks.fire(event)
