"""
Approval workflow exceptions.
"""


class ApprovalError(Exception):
    """Base error for the approval engine."""
    pass


class FlowNotFound(ApprovalError):
    """No active flow matches the action type (and tenant)."""
    def __init__(self, action_type: str, tenant_id=None):
        self.action_type = action_type
        self.tenant_id = tenant_id
        msg = f"No active approval flow found for action: {action_type}"
        if tenant_id is not None:
            msg += f" (tenant {tenant_id})"
        super().__init__(msg)


class InvalidConditionEvaluator(ApprovalError):
    """Configured condition does not provide requires_approval()."""
    def __init__(self, key: str, reason: str = None):
        self.key = key
        self.reason = reason
        msg = f"Invalid approval condition '{key}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidState(ApprovalError):
    """Request status forbids the attempted action."""
    def __init__(self, request_id, status, action: str):
        self.request_id = request_id
        self.status = status
        self.action = action
        status_value = getattr(status, 'value', status)
        super().__init__(f"Request {request_id} is {status_value}, cannot {action}")


class NotPendingApprover(ApprovalError):
    """Reroute source is not among the pending approvers."""
    def __init__(self, request_id, approver_id):
        self.request_id = request_id
        self.approver_id = approver_id
        super().__init__(
            f"User {approver_id} is not a pending approver of request {request_id}")


class ApproverExcluded(ApprovalError):
    """Target approver was removed from this request and cannot be made pending again."""
    def __init__(self, request_id, approver_id):
        self.request_id = request_id
        self.approver_id = approver_id
        super().__init__(
            f"User {approver_id} was removed from request {request_id}")


class RequestNotFound(ApprovalError):
    """No approval request with this id."""
    def __init__(self, request_id):
        self.request_id = request_id
        super().__init__(f"Request {request_id} not found")
