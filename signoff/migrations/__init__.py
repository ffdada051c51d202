"""Schema setup for the approval workflow tables."""
from .init_schema import create_schema, init_db

__all__ = ['create_schema', 'init_db']
