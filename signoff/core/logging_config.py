"""
Structured logging configuration for signoff.

JSON lines in production, a compact coloured format while developing.
Approval transitions attach the request id, level and status through
``log_with_context`` so a single request can be followed across logs.
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone
from typing import Optional


def _record_context(record):
    """Context fields attached by log_with_context()."""
    return dict(getattr(record, 'call_context', None) or {})


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }

        context = _record_context(record)
        if context:
            log_entry.update(context)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        reset = self.RESET if color else ''

        timestamp = datetime.now().strftime('%H:%M:%S')
        base = f'{color}[{timestamp}] {record.levelname:8}{reset} {record.name:32} {record.getMessage()}'

        context = _record_context(record)
        if context:
            pairs = ' '.join(f'{k}={v}' for k, v in context.items())
            base = f'{base} [{pairs}]'

        if record.exc_info:
            base = f'{base}\n{self.formatException(record.exc_info)}'

        return base


def setup_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    logger_name: str = 'signoff'
) -> logging.Logger:
    """Configure and return the package logger.

    Args:
        level: Log level name. Defaults to SIGNOFF_LOG_LEVEL or INFO.
        json_format: Use JSON formatting. If None, PRODUCTION=true selects it.
        logger_name: Root of the logger tree to configure.

    Returns:
        Configured logger instance.
    """
    if level is None:
        level = os.environ.get('SIGNOFF_LOG_LEVEL', 'INFO')
    if json_format is None:
        json_format = os.environ.get('PRODUCTION', '').lower() == 'true'

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logger.level)
    handler.setFormatter(JSONFormatter() if json_format else DevelopmentFormatter())
    logger.addHandler(handler)

    logger.propagate = False

    return logger


def get_logger(name: str = 'signoff') -> logging.Logger:
    """Get a logger instance, e.g. get_logger('signoff.approvals.service')."""
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log a single message with additional context fields."""
    logger.log(level, message, extra={'call_context': context})
