"""Approval engine module.

    from signoff.approvals import ApprovalService, register_approval_hooks

    register_approval_hooks()
    service = ApprovalService()
    request = service.submit(invoice, 'invoice.approve', creator_id=7)
    service.approve(request.id, actor_id=12)
"""
from .conditions import ConditionRegistry, RuleEvaluator, default_registry, register_condition
from .engine import ApprovalEngine, auto_approve_when_ungoverned
from .exceptions import (
    ApprovalError, ApproverExcluded, FlowNotFound, InvalidConditionEvaluator,
    InvalidState, NotPendingApprover, RequestNotFound,
)
from .handlers import NotificationDispatcher, register_approval_hooks
from .models import (
    ApprovalEvent, ApprovalRequest, ApprovalStatus, AuditAction, AuditLogEntry,
    EventType, Flow, Step, Strategy, SubjectRef, Transition, resolve_approvers,
)
from .service import ApprovalService
from .subject import ApprovableMixin

__all__ = [
    'ApprovalEngine', 'ApprovalService', 'auto_approve_when_ungoverned',
    'ConditionRegistry', 'RuleEvaluator', 'default_registry', 'register_condition',
    'ApprovalError', 'ApproverExcluded', 'FlowNotFound', 'InvalidConditionEvaluator',
    'InvalidState', 'NotPendingApprover', 'RequestNotFound',
    'NotificationDispatcher', 'register_approval_hooks',
    'ApprovalEvent', 'ApprovalRequest', 'ApprovalStatus', 'AuditAction', 'AuditLogEntry',
    'EventType', 'Flow', 'Step', 'Strategy', 'SubjectRef', 'Transition', 'resolve_approvers',
    'ApprovableMixin',
]
