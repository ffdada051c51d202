"""Approval engine repositories."""
from .flow_repo import FlowRepository
from .request_repo import RequestRepository
from .audit_repo import AuditRepository

__all__ = [
    'FlowRepository', 'RequestRepository', 'AuditRepository',
]
