"""Mixin that gives a domain object approval helpers.

    class Invoice(ApprovableMixin):
        approval_type = 'invoice'

    invoice.approval_request()      # latest request, or None
    invoice.is_pending_approval()
"""

from .models import ApprovalStatus, SubjectRef


class ApprovableMixin:
    """Host classes need an ``id``. ``approval_type`` defaults to the class name."""

    approval_type = None

    def approval_subject(self):
        return SubjectRef(self.approval_type or type(self).__name__, self.id)

    def approval_request(self, service=None):
        if service is None:
            from .service import ApprovalService
            service = ApprovalService()
        return service.get_latest_for_subject(self)

    def approval_history(self, service=None):
        if service is None:
            from .service import ApprovalService
            service = ApprovalService()
        return service.get_history_for_subject(self)

    def _approval_status(self, service=None):
        request = self.approval_request(service)
        return request.status if request is not None else None

    def is_pending_approval(self, service=None):
        return self._approval_status(service) in (ApprovalStatus.PENDING, ApprovalStatus.RETURNED)

    def is_approved(self, service=None):
        return self._approval_status(service) == ApprovalStatus.APPROVED

    def is_rejected(self, service=None):
        return self._approval_status(service) == ApprovalStatus.REJECTED
