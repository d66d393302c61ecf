"""Notification repositories package."""
from .notification_repo import NotificationRepository, ADMIN_TYPES, CLIENT_TYPES, audience_for
from .counts_repo import CountsRepository

__all__ = ['NotificationRepository', 'CountsRepository', 'ADMIN_TYPES', 'CLIENT_TYPES', 'audience_for']
