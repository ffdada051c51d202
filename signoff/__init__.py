"""Signoff — multi-level approval workflows.

- Flow definitions with ordered levels and any/all voting strategies
- Pure transition engine with audit trail and events
- Transactional service over PostgreSQL
- In-app and mail notifications for approvers and creators
"""

__version__ = '0.1.0'
