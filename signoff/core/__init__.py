"""Shared infrastructure: database pool, repositories base, logging, mail."""
