"""Notification helpers used by the service layer.

    from atelier.core.notifications.notify import notify_admin, notify_client

    notify_admin('ticket', 'Nouveau ticket', message=ticket['titre'],
                 projet_id=pid, client_id=cid, related_id=ticket['id'])
    notify_client(cid, 'task_created', 'Nouvelle tâche', projet_id=pid, related_id=task_id)

A failed notification is logged and never fails the write that raised it.
"""

import logging

from .repositories import NotificationRepository
from atelier.core.queries import (
    invalidate_queries, admin_notifications_key, client_notifications_key, client_sidebar_key,
    SIDEBAR_COUNTS,
)

logger = logging.getLogger('atelier.core.notifications.notify')

_repo = NotificationRepository()


def notify_admin(type, title, message=None, projet_id=None, client_id=None, related_id=None):
    """Send an in-app notification to the agency (admin audience)."""
    try:
        row = _repo.create(type=type, title=title, message=message, projet_id=projet_id,
                           client_id=client_id, related_id=related_id)
    except Exception as e:
        logger.error(f'Failed to create admin notification {type} (projet {projet_id}): {e}')
        return None
    invalidate_queries(admin_notifications_key(), SIDEBAR_COUNTS)
    return row


def notify_client(client_id, type, title, message=None, projet_id=None, related_id=None):
    """Send an in-app notification to one client."""
    if client_id is None:
        logger.warning(f'Skipping {type} notification: project {projet_id} has no client')
        return None
    try:
        row = _repo.create(type=type, title=title, message=message, projet_id=projet_id,
                           client_id=client_id, related_id=related_id)
    except Exception as e:
        logger.error(f'Failed to create notification {type} for client {client_id}: {e}')
        return None
    invalidate_queries(client_notifications_key(client_id), client_sidebar_key(client_id))
    return row
