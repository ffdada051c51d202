"""ApprovalEngine — state transitions of the approval workflow.

The engine is pure decision logic. Each operation takes the current
request snapshot (and its flow) and returns a ``Transition``: the next
snapshot, the audit entries to append and the events to publish. It never
touches storage; ``ApprovalService`` loads, persists and publishes around
it inside one database transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Tuple

from signoff.config import get_config

from .conditions import default_registry
from .exceptions import (
    ApproverExcluded, FlowNotFound, InvalidState, NotPendingApprover,
)
from .models import (
    ApprovalEvent, ApprovalRequest, ApprovalStatus, AuditAction, AuditLogEntry,
    EventType, Flow, Strategy, SubjectRef, Transition, resolve_approvers,
)

logger = logging.getLogger('signoff.approvals.engine')

AUTO_ADVANCE_COMMENT = 'System auto-advance: current approver removed'


def auto_approve_when_ungoverned(config) -> bool:
    """Policy for submissions without governance (no active flow, or a flow without steps).

    True lets the subject through as approved; False raises FlowNotFound.
    """
    if config is None:
        return True
    return bool(getattr(config, 'AUTO_APPROVE_WITHOUT_FLOW', True))


def _sole(approvers) -> Optional[Any]:
    """Legacy single-approver value: the only pending approver, else None."""
    if len(approvers) == 1:
        return next(iter(approvers))
    return None


def _creator(request: ApprovalRequest) -> frozenset:
    return frozenset([request.creator_id]) if request.creator_id is not None else frozenset()


class ApprovalEngine:

    def __init__(self, conditions=None, config=None, clock=None):
        self._conditions = conditions or default_registry
        self._config = config if config is not None else get_config()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ════════════════════════════════════════════
    # Operations
    # ════════════════════════════════════════════

    def submit(self, flow: Optional[Flow], subject, creator_id=None,
               metadata=None, attributes=None, action_type=None, tenant_id=None) -> Transition:
        """Start a request for ``subject`` under ``flow``.

        ``subject`` is the domain object (handed to the condition as-is) or a
        ``SubjectRef``.

        1. No flow: ungoverned policy (auto-approve)
        2. Condition says approval not required: SKIPPED
        3. Flow without steps: ungoverned policy
        4. Otherwise PENDING at the first level
        """
        attributes = attributes or {}
        ref = SubjectRef.of(subject)
        base = ApprovalRequest(
            subject=ref,
            flow_id=flow.id if flow else None,
            creator_id=creator_id,
            tenant_id=tenant_id,
            metadata=dict(metadata or {}),
        )

        if flow is None:
            return self._ungoverned(base, action_type, tenant_id,
                                    'Auto-approved: no approval flow configured')

        if flow.condition_key:
            condition = self._conditions.resolve(flow.condition_key, flow.condition_params)
            if not condition.requires_approval(subject, attributes):
                request = base.evolve(status=ApprovalStatus.SKIPPED, current_level=1)
                logger.info(f"Approval skipped for {ref.type}/{ref.id} "
                            f"by condition '{flow.condition_key}'")
                return Transition(
                    request=request,
                    audit_entries=(AuditLogEntry(
                        AuditAction.SKIPPED, creator_id,
                        f'Approval skipped by condition: {flow.condition_key}'),),
                    events=(ApprovalEvent(EventType.REQUEST_SKIPPED, request),),
                )

        if not flow.steps:
            return self._ungoverned(base, action_type or flow.action_type, tenant_id,
                                    'Auto-approved: approval flow has no steps')

        first = flow.steps[0]
        pending = resolve_approvers(first)
        request = base.evolve(
            status=ApprovalStatus.PENDING,
            current_level=first.level,
            pending_approvers=pending,
            current_approver_id=_sole(pending),
        )
        return Transition(
            request=request,
            audit_entries=(AuditLogEntry(AuditAction.SUBMITTED, creator_id,
                                         'Submitted for approval'),),
            events=(ApprovalEvent(EventType.REQUEST_SUBMITTED, request, recipients=pending),),
        )

    def approve(self, request: ApprovalRequest, flow: Optional[Flow], actor_id,
                comment: Optional[str] = None) -> Transition:
        """Record an affirmative vote at the current level; advance when the strategy is met."""
        self._require_votable(request, 'approve')
        if actor_id in request.removed_approvers:
            raise ApproverExcluded(request.id, actor_id)
        return self._vote(request, flow, actor_id, comment)

    def _vote(self, request, flow, actor_id, comment):
        step = flow.step_at(request.current_level) if flow else None
        eligible = resolve_approvers(step) - request.removed_approvers
        strategy = step.strategy if step else Strategy.ANY

        pending = request.pending_approvers - {actor_id}
        approved_by = request.approved_by
        if actor_id in eligible:
            approved_by = approved_by | {actor_id}

        voted = request.evolve(
            status=ApprovalStatus.PENDING,
            requested_changes=(),
            pending_approvers=pending,
            approved_by=approved_by,
            current_approver_id=_sole(pending),
        )
        vote = Transition(
            request=voted,
            audit_entries=(AuditLogEntry(AuditAction.APPROVED, actor_id, comment),),
        )

        if strategy is Strategy.ALL and pending:
            logger.debug(f'Request {request.id} level {request.current_level}: '
                         f'{len(pending)} vote(s) outstanding')
            return vote

        return vote.then(self._advance(voted, flow))

    def reject(self, request: ApprovalRequest, actor_id, comment: Optional[str] = None) -> Transition:
        self._require_votable(request, 'reject')
        rejected = request.evolve(
            status=ApprovalStatus.REJECTED,
            rejected_at=self._clock(),
            pending_approvers=frozenset(),
            current_approver_id=None,
            requested_changes=(),
        )
        return Transition(
            request=rejected,
            audit_entries=(AuditLogEntry(AuditAction.REJECTED, actor_id, comment),),
            events=(ApprovalEvent(EventType.REQUEST_REJECTED, rejected,
                                  recipients=_creator(rejected)),),
        )

    def request_changes(self, request: ApprovalRequest, actor_id, fields: Iterable[str] = (),
                        comment: Optional[str] = None) -> Transition:
        """Send the request back to its creator; work resumes at the same level."""
        self._require_votable(request, 'request changes on')
        returned = request.evolve(
            status=ApprovalStatus.RETURNED,
            requested_changes=tuple(fields or ()),
        )
        return Transition(
            request=returned,
            audit_entries=(AuditLogEntry(AuditAction.RETURNED, actor_id, comment),),
            events=(ApprovalEvent(EventType.CHANGES_REQUESTED, returned,
                                  recipients=_creator(returned)),),
        )

    def remove_approver(self, request: ApprovalRequest, flow: Optional[Flow], approver_id,
                        admin_id) -> Transition:
        """Exclude ``approver_id`` from every remaining level of the request.

        Advances the request through ``approve`` when the removal leaves the
        current level without the approver it was waiting on.
        """
        if request.is_terminal:
            raise InvalidState(request.id, request.status, 'remove an approver from')

        was_current = (request.current_approver_id is not None
                       and request.current_approver_id == approver_id)
        pending = request.pending_approvers - {approver_id}
        updated = request.evolve(
            removed_approvers=request.removed_approvers | {approver_id},
            pending_approvers=pending,
            approved_by=request.approved_by - {approver_id},
            current_approver_id=_sole(pending),
        )
        removal = Transition(
            request=updated,
            audit_entries=(AuditLogEntry(AuditAction.APPROVER_REMOVED, admin_id,
                                         f'Removed approver {approver_id} from the request'),),
            events=(ApprovalEvent(EventType.APPROVER_REMOVED, updated,
                                  removed_approver_id=approver_id),),
        )

        step = flow.step_at(request.current_level) if flow else None
        level_drained = (step is not None and step.strategy is Strategy.ALL
                         and not step.is_open and not pending)
        if was_current or level_drained:
            logger.info(f'Request {request.id}: approver {approver_id} removed at level '
                        f'{request.current_level}, auto-advancing')
            return removal.then(self._vote(updated, flow, admin_id, AUTO_ADVANCE_COMMENT))
        return removal

    def reroute(self, request: ApprovalRequest, old_approver_id, new_approver_id,
                admin_id) -> Transition:
        """Hand a pending vote from one approver to another at the current level."""
        if request.is_terminal:
            raise InvalidState(request.id, request.status, 'reroute')

        pending = request.pending_approvers
        if not pending and request.current_approver_id is not None:
            pending = frozenset([request.current_approver_id])

        if old_approver_id not in pending:
            raise NotPendingApprover(request.id, old_approver_id)
        if new_approver_id in request.removed_approvers:
            raise ApproverExcluded(request.id, new_approver_id)

        new_pending = (pending - {old_approver_id}) | {new_approver_id}
        rerouted = request.evolve(
            pending_approvers=new_pending,
            current_approver_id=_sole(new_pending),
        )
        return Transition(
            request=rerouted,
            audit_entries=(AuditLogEntry(
                AuditAction.REROUTED, admin_id,
                f'Rerouted from user {old_approver_id} to {new_approver_id}'),),
            events=(ApprovalEvent(EventType.APPROVAL_ADVANCED, rerouted,
                                  recipients=new_pending),),
        )

    # ════════════════════════════════════════════
    # Next-approver search
    # ════════════════════════════════════════════

    def next_valid_level(self, flow: Optional[Flow], after_level: int,
                         removed=frozenset()) -> Optional[Tuple[int, frozenset]]:
        """First level after ``after_level`` that still has someone to act.

        A level qualifies when its approvers minus ``removed`` is non-empty,
        or when it is an open (role-based) step. Returns (level, approvers)
        or None when every remaining level is exhausted.
        """
        if flow is None:
            return None
        for step in flow.steps:
            if step.level <= after_level:
                continue
            approvers = resolve_approvers(step) - removed
            if approvers or step.is_open:
                return step.level, approvers
            logger.debug(f'Skipping level {step.level}: all approvers removed')
        return None

    # ════════════════════════════════════════════
    # Internal
    # ════════════════════════════════════════════

    def _advance(self, request: ApprovalRequest, flow: Optional[Flow]) -> Transition:
        found = self.next_valid_level(flow, request.current_level, request.removed_approvers)

        if found is None:
            approved = request.evolve(
                status=ApprovalStatus.APPROVED,
                approved_at=self._clock(),
                pending_approvers=frozenset(),
                current_approver_id=None,
            )
            logger.info(f'Request {request.id} approved at level {request.current_level}')
            return Transition(
                request=approved,
                events=(ApprovalEvent(EventType.REQUEST_APPROVED, approved,
                                      recipients=_creator(approved)),),
            )

        level, approvers = found
        advanced = request.evolve(
            current_level=level,
            pending_approvers=approvers,
            approved_by=frozenset(),
            current_approver_id=_sole(approvers),
        )
        logger.info(f'Request {request.id} advanced from level {request.current_level} to {level}')
        return Transition(
            request=advanced,
            events=(ApprovalEvent(EventType.APPROVAL_ADVANCED, advanced, recipients=approvers),),
        )

    def _ungoverned(self, request: ApprovalRequest, action_type, tenant_id,
                    reason: str) -> Transition:
        if not auto_approve_when_ungoverned(self._config):
            raise FlowNotFound(action_type, tenant_id)

        approved = request.evolve(
            status=ApprovalStatus.APPROVED,
            approved_at=self._clock(),
            pending_approvers=frozenset(),
            current_approver_id=None,
        )
        logger.info(f'{request.subject.type}/{request.subject.id}: {reason}')
        return Transition(
            request=approved,
            audit_entries=(AuditLogEntry(AuditAction.APPROVED, request.creator_id, reason),),
            events=(ApprovalEvent(EventType.REQUEST_APPROVED, approved,
                                  recipients=_creator(approved), auto_approved=True),),
        )

    @staticmethod
    def _require_votable(request: ApprovalRequest, action: str):
        if not request.status.accepts_votes:
            raise InvalidState(request.id, request.status, action)
