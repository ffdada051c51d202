"""
Approval Data Models

Data classes for flows, steps, requests and audit entries.

Requests are immutable snapshots: every transition builds a new
``ApprovalRequest`` with ``dataclasses.replace`` and fresh frozensets, so
computing the next state never touches the loaded one.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class ApprovalStatus(Enum):
    """Status of an approval request."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"
    RETURNED = "returned"

    @property
    def is_terminal(self) -> bool:
        return self in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.SKIPPED)

    @property
    def accepts_votes(self) -> bool:
        return self in (ApprovalStatus.PENDING, ApprovalStatus.RETURNED)


class Strategy(Enum):
    """How many votes satisfy a level."""
    ANY = "any"     # first vote advances
    ALL = "all"     # every assigned approver must vote


class AuditAction(Enum):
    """Action tags written to the audit log."""
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"
    REROUTED = "rerouted"
    APPROVER_REMOVED = "approver_removed"
    SKIPPED = "skipped"


class EventType(Enum):
    """Events emitted by transitions, published after commit."""
    REQUEST_SUBMITTED = "approval.submitted"
    APPROVAL_ADVANCED = "approval.advanced"
    REQUEST_APPROVED = "approval.approved"
    REQUEST_REJECTED = "approval.rejected"
    CHANGES_REQUESTED = "approval.changes_requested"
    APPROVER_REMOVED = "approval.approver_removed"
    REQUEST_SKIPPED = "approval.skipped"


def _ids(values) -> FrozenSet[Any]:
    if values is None:
        return frozenset()
    return frozenset(values)


@dataclass(frozen=True)
class SubjectRef:
    """Reference to the business record under approval."""
    type: str
    id: Any

    @classmethod
    def of(cls, obj) -> 'SubjectRef':
        """Build a reference from a domain object exposing ``approval_subject()`` or ``id``.

        Dict subjects use their ``id`` key and an optional ``type`` key.

        Raises:
            ValueError: the subject has no id.
        """
        if isinstance(obj, SubjectRef):
            return obj
        if isinstance(obj, dict):
            if obj.get('id') is None:
                raise ValueError('Dict subject needs an "id" key')
            return cls(type=obj.get('type') or 'dict', id=obj['id'])
        subject = getattr(obj, 'approval_subject', None)
        if callable(subject):
            return subject()
        subject_id = getattr(obj, 'id', None)
        if subject_id is None:
            raise ValueError(f'{type(obj).__name__} subject has no id')
        return cls(type=type(obj).__name__, id=subject_id)


@dataclass
class Step:
    """One level of a flow."""
    level: int
    id: Optional[int] = None
    flow_id: Optional[int] = None
    approvers: FrozenSet[Any] = field(default_factory=frozenset)
    approver_id: Optional[Any] = None      # legacy single approver
    role_id: Optional[Any] = None
    strategy: Strategy = Strategy.ANY
    action: str = "approve"

    def __post_init__(self):
        self.approvers = _ids(self.approvers)
        if isinstance(self.strategy, str):
            self.strategy = Strategy(self.strategy.lower())
        elif self.strategy is None:
            self.strategy = Strategy.ANY

    @property
    def is_open(self) -> bool:
        """Role-based step with no named approvers: anyone may vote, never skipped."""
        return not self.approvers and self.approver_id is None


def resolve_approvers(step: Optional[Step]) -> FrozenSet[Any]:
    """Canonical approver set of a step.

    The explicit set wins; otherwise the legacy single approver as a
    singleton; otherwise empty (open step).
    """
    if step is None:
        return frozenset()
    if step.approvers:
        return step.approvers
    if step.approver_id is not None:
        return frozenset([step.approver_id])
    return frozenset()


@dataclass
class Flow:
    """Ordered definition of approval levels for an action type."""
    action_type: str
    id: Optional[int] = None
    name: str = ""
    description: Optional[str] = None
    tenant_id: Optional[Any] = None
    is_active: bool = True
    condition_key: Optional[str] = None
    condition_params: Dict[str, Any] = field(default_factory=dict)
    steps: Tuple[Step, ...] = ()

    def __post_init__(self):
        self.steps = tuple(sorted(self.steps, key=lambda s: s.level))
        if self.condition_params is None:
            self.condition_params = {}

    def step_at(self, level: int) -> Optional[Step]:
        for step in self.steps:
            if step.level == level:
                return step
        return None

    @property
    def levels(self) -> List[int]:
        return [s.level for s in self.steps]


@dataclass(frozen=True)
class ApprovalRequest:
    """Snapshot of one approval traversal for a subject."""
    subject: SubjectRef
    flow_id: Optional[int] = None
    id: Optional[int] = None
    current_level: int = 1
    status: ApprovalStatus = ApprovalStatus.PENDING
    creator_id: Optional[Any] = None
    tenant_id: Optional[Any] = None
    pending_approvers: FrozenSet[Any] = frozenset()
    approved_by: FrozenSet[Any] = frozenset()
    removed_approvers: FrozenSet[Any] = frozenset()
    requested_changes: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)
    current_approver_id: Optional[Any] = None   # legacy column, sole pending approver
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        # frozen: coerce through object.__setattr__
        if isinstance(self.status, str):
            object.__setattr__(self, 'status', ApprovalStatus(self.status))
        for name in ('pending_approvers', 'approved_by', 'removed_approvers'):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, _ids(value))
        if not isinstance(self.requested_changes, tuple):
            object.__setattr__(self, 'requested_changes', tuple(self.requested_changes or ()))
        if self.metadata is None:
            object.__setattr__(self, 'metadata', {})

    def evolve(self, **changes) -> 'ApprovalRequest':
        return replace(self, **changes)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class AuditLogEntry:
    """One append-only audit row."""
    action: AuditAction
    actor_id: Optional[Any] = None
    comment: Optional[str] = None
    request_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.action, str):
            object.__setattr__(self, 'action', AuditAction(self.action))


@dataclass(frozen=True)
class ApprovalEvent:
    """Event handed to the dispatcher after commit."""
    type: EventType
    request: ApprovalRequest
    recipients: FrozenSet[Any] = frozenset()
    removed_approver_id: Optional[Any] = None
    auto_approved: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """Plain dict form handed to hook callbacks."""
        req = self.request
        return {
            'event': self.type.value,
            'request': req,
            'request_id': req.id,
            'subject_type': req.subject.type,
            'subject_id': req.subject.id,
            'status': req.status.value,
            'current_level': req.current_level,
            'creator_id': req.creator_id,
            'recipients': sorted(self.recipients, key=str),
            'removed_approver_id': self.removed_approver_id,
            'auto_approved': self.auto_approved,
            'requested_changes': list(req.requested_changes),
        }


@dataclass(frozen=True)
class Transition:
    """Result of an engine operation: next state, audit rows and events."""
    request: ApprovalRequest
    audit_entries: Tuple[AuditLogEntry, ...] = ()
    events: Tuple[ApprovalEvent, ...] = ()

    def then(self, other: 'Transition') -> 'Transition':
        """Chain a follow-up transition computed from this one's request."""
        return Transition(
            request=other.request,
            audit_entries=self.audit_entries + other.audit_entries,
            events=self.events + other.events,
        )
