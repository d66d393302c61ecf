"""Notification center and badge counts.

Every operation takes the caller's PortalSession: an AdminSession sees
the admin audience, a ClientSession only its own client's notifications.
"""

import logging
from typing import Optional

from .repositories import NotificationRepository, CountsRepository
from atelier.config import get_config
from atelier.core.auth.context import ClientSession
from atelier.core.queries import (
    ServiceResult, fetch_query, run_mutation, SIDEBAR_COUNTS,
    admin_notifications_key, admin_unread_key, client_notifications_key, client_unread_key,
    client_sidebar_key,
)

logger = logging.getLogger('atelier.core.notifications.service')

LIST_LIMIT = 50


def format_badge(count) -> Optional[str]:
    """Sidebar badge text: nothing for zero, '9+' past nine."""
    if not count:
        return None
    return '9+' if count > 9 else str(count)


def _audience(portal_session):
    if isinstance(portal_session, ClientSession):
        return 'client', portal_session.client_id
    return 'admin', None


class NotificationService:

    def __init__(self):
        self.repo = NotificationRepository()
        self.counts_repo = CountsRepository()

    def list_notifications(self, portal_session, limit=LIST_LIMIT):
        audience, client_id = _audience(portal_session)
        if audience == 'admin':
            key = admin_notifications_key()
        else:
            key = client_notifications_key(client_id)
        rows = fetch_query('notifications', key,
                           lambda: self.repo.list_for(audience, client_id, limit=LIST_LIMIT),
                           default=[])
        return rows[:limit]

    def unread_count(self, portal_session) -> int:
        audience, client_id = _audience(portal_session)
        key = admin_unread_key() if audience == 'admin' else client_unread_key(client_id)
        return fetch_query('unread-count', key,
                           lambda: self.repo.get_unread_count(audience, client_id),
                           default=0)

    def mark_read(self, portal_session, notification_id) -> ServiceResult:
        """Idempotent: an already-read notification is returned unchanged."""
        audience, client_id = _audience(portal_session)
        return run_mutation(
            'notification.mark_read',
            lambda: self.repo.mark_read(notification_id, audience, client_id),
            context={'client_id': client_id},
            not_found='Notification introuvable',
        )

    def mark_all_read(self, portal_session) -> ServiceResult:
        audience, client_id = _audience(portal_session)
        result = run_mutation(
            'notification.mark_all_read',
            lambda: self.repo.mark_all_read(audience, client_id),
            context={'client_id': client_id},
        )
        if result.success:
            result.data = {'count': result.data}
        return result

    def admin_sidebar_counts(self):
        """Counts behind the admin sidebar badges, refreshed every 30 s."""
        counts = fetch_query('sidebar-counts', SIDEBAR_COUNTS, self.counts_repo.admin_sidebar_counts,
                             default={})
        return {
            'counts': counts,
            'badges': {k: format_badge(v) for k, v in counts.items()},
            'refresh_interval': get_config().SIDEBAR_REFRESH_SECONDS,
        }

    def client_sidebar_counts(self, portal_session, project_id):
        """Per-project counts for the client sidebar. No project selected: zeros."""
        client_id = portal_session.client_id
        if project_id is None:
            counts = {'tasks': 0, 'documents': 0, 'tickets': 0,
                      'notifications': self.unread_count(portal_session)}
        else:
            counts = fetch_query(
                'sidebar-counts', client_sidebar_key(client_id, project_id),
                lambda: self.counts_repo.client_sidebar_counts(client_id, project_id), default={})
        return {
            'counts': counts,
            'badges': {k: format_badge(v) for k, v in counts.items()},
            'refresh_interval': get_config().SIDEBAR_REFRESH_SECONDS,
        }
