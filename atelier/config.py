"""
Portal Configuration

Environment variables and settings shared by both portals.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class PortalConfig:
    """Atelier configuration settings."""

    # Logging
    LOG_LEVEL: str = 'INFO'
    PRODUCTION: bool = False

    # Flask
    SECRET_KEY: Optional[str] = None
    DEBUG: bool = False
    TESTING: bool = False

    # Query cache
    QUERY_RETRY_COUNT: int = 2           # Extra attempts for reads, never for mutations
    CACHE_SWEEP_SECONDS: int = 60

    # Polling hint returned with badge counts
    SIDEBAR_REFRESH_SECONDS: int = 30

    # Storage
    MAX_UPLOAD_MB: int = 10
    DRIVE_ROOT_FOLDER_ID: Optional[str] = None

    # Background jobs
    NOTIFICATION_RETENTION_DAYS: int = 90

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    @classmethod
    def from_env(cls) -> 'PortalConfig':
        """Load configuration from environment variables."""
        return cls(
            LOG_LEVEL=os.environ.get('LOG_LEVEL', 'INFO'),
            PRODUCTION=os.environ.get('PRODUCTION', '').lower() == 'true',
            SECRET_KEY=os.environ.get('FLASK_SECRET_KEY', os.environ.get('SECRET_KEY')),
            DEBUG=os.environ.get('FLASK_DEBUG', 'false').lower() == 'true',
            TESTING=bool(os.environ.get('TESTING')),
            QUERY_RETRY_COUNT=int(os.environ.get('QUERY_RETRY_COUNT', '2')),
            CACHE_SWEEP_SECONDS=int(os.environ.get('CACHE_SWEEP_SECONDS', '60')),
            SIDEBAR_REFRESH_SECONDS=int(os.environ.get('SIDEBAR_REFRESH_SECONDS', '30')),
            MAX_UPLOAD_MB=int(os.environ.get('MAX_UPLOAD_MB', '10')),
            DRIVE_ROOT_FOLDER_ID=os.environ.get('DRIVE_ROOT_FOLDER_ID'),
            NOTIFICATION_RETENTION_DAYS=int(os.environ.get(
                'NOTIFICATION_RETENTION_DAYS', '90'
            )),
        )


_default_config: Optional[PortalConfig] = None


def get_config() -> PortalConfig:
    """Get the default configuration instance."""
    global _default_config
    if _default_config is None:
        _default_config = PortalConfig.from_env()
    return _default_config


def reset_config():
    """Reset configuration (for testing)."""
    global _default_config
    _default_config = None
