"""
Signoff Configuration

Environment variables and settings for the approval workflow.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

SUPPORTED_CHANNELS = ('in_app', 'mail')


def _env_bool(name: str, default: str = 'true') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class SMTPConfig:
    """Outgoing mail settings for the ``mail`` notification channel."""
    HOST: str = ''
    PORT: int = 587
    USE_TLS: bool = True
    USERNAME: str = ''
    PASSWORD: str = ''
    FROM_EMAIL: str = ''
    FROM_NAME: str = 'Approvals'

    @property
    def is_configured(self) -> bool:
        return bool(self.HOST and self.FROM_EMAIL)

    @classmethod
    def from_env(cls) -> 'SMTPConfig':
        return cls(
            HOST=os.environ.get('SMTP_HOST', ''),
            PORT=int(os.environ.get('SMTP_PORT', '587') or 587),
            USE_TLS=_env_bool('SMTP_TLS', 'true'),
            USERNAME=os.environ.get('SMTP_USERNAME', ''),
            PASSWORD=os.environ.get('SMTP_PASSWORD', ''),
            FROM_EMAIL=os.environ.get('SMTP_FROM_EMAIL', ''),
            FROM_NAME=os.environ.get('SMTP_FROM_NAME', 'Approvals'),
        )


@dataclass
class ApprovalConfig:
    """Approval workflow configuration settings."""

    # Notifications
    NOTIFICATIONS_ENABLED: bool = True
    NOTIFICATION_CHANNELS: List[str] = field(default_factory=lambda: ['in_app'])
    NOTIFICATIONS_USE_QUEUE: bool = True   # dispatch on a worker pool after commit
    NOTIFICATION_WORKERS: int = 2

    # Submissions with no active flow (or a flow without steps) pass unconditionally
    AUTO_APPROVE_WITHOUT_FLOW: bool = True

    # Links in notifications
    APP_BASE_URL: str = ''

    SMTP: SMTPConfig = field(default_factory=SMTPConfig)

    def __post_init__(self):
        if isinstance(self.NOTIFICATION_CHANNELS, str):
            self.NOTIFICATION_CHANNELS = _split_channels(self.NOTIFICATION_CHANNELS)
        unknown = [c for c in self.NOTIFICATION_CHANNELS if c not in SUPPORTED_CHANNELS]
        if unknown:
            raise ValueError(f"Unsupported notification channel(s): {', '.join(unknown)}")

    def link(self, path: str = '/approvals') -> Optional[str]:
        """Absolute link for notifications, or the bare path without a base URL."""
        if not self.APP_BASE_URL:
            return path
        return self.APP_BASE_URL.rstrip('/') + path

    @classmethod
    def from_env(cls) -> 'ApprovalConfig':
        """Load configuration from environment variables."""
        return cls(
            NOTIFICATIONS_ENABLED=_env_bool('SIGNOFF_NOTIFICATIONS_ENABLED', 'true'),
            NOTIFICATION_CHANNELS=_split_channels(
                os.environ.get('SIGNOFF_NOTIFICATION_CHANNELS', 'in_app')),
            NOTIFICATIONS_USE_QUEUE=_env_bool('SIGNOFF_NOTIFICATIONS_USE_QUEUE', 'true'),
            NOTIFICATION_WORKERS=int(os.environ.get('SIGNOFF_NOTIFICATION_WORKERS', '2')),
            AUTO_APPROVE_WITHOUT_FLOW=_env_bool('SIGNOFF_AUTO_APPROVE_WITHOUT_FLOW', 'true'),
            APP_BASE_URL=os.environ.get('SIGNOFF_APP_BASE_URL', ''),
            SMTP=SMTPConfig.from_env(),
        )


def _split_channels(raw: str) -> List[str]:
    return [c.strip() for c in raw.split(',') if c.strip()]


_config: Optional[ApprovalConfig] = None


def get_config() -> ApprovalConfig:
    """Process-wide configuration, loaded from the environment on first use."""
    global _config
    if _config is None:
        _config = ApprovalConfig.from_env()
    return _config


def set_config(config: Optional[ApprovalConfig]):
    """Replace the process-wide configuration. ``None`` reloads from env on next use."""
    global _config
    _config = config
