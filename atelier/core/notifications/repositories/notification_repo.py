"""In-app notification repository.

Notifications go to one of two audiences:

- admin: raised by client activity (comment, ticket, review)
- client: raised by agency activity on the client's project (task and
  milestone changes, document uploads); always scoped by client_id

Reading is one-way: unread -> read. Marking an already-read row is a
no-op that still reports the row, and read_at keeps its first value.
"""

import logging
from atelier.core.base_repository import BaseRepository

logger = logging.getLogger('atelier.core.notifications.notification_repo')

ADMIN_TYPES = ('comment', 'ticket', 'review')
CLIENT_TYPES = ('task_created', 'task_updated', 'milestone_created', 'milestone_updated',
                'document_uploaded')


def audience_for(notification_type):
    if notification_type in ADMIN_TYPES:
        return 'admin'
    if notification_type in CLIENT_TYPES:
        return 'client'
    raise ValueError(f'Unknown notification type: {notification_type}')


def _scope(audience, client_id, alias=''):
    """WHERE fragment + params restricting rows to one audience."""
    if audience == 'admin':
        return f'{alias}audience = %s', ['admin']
    if client_id is None:
        raise ValueError('client_id is required for client notifications')
    return f'{alias}audience = %s AND {alias}client_id = %s', ['client', client_id]


class NotificationRepository(BaseRepository):

    def create(self, type, title, message=None, projet_id=None, client_id=None, related_id=None):
        """Insert a notification; the audience follows from the type."""
        audience = audience_for(type)
        if audience == 'client' and client_id is None:
            raise ValueError(f'{type} notifications need a client_id')
        return self.execute('''
            INSERT INTO notifications (type, audience, title, message, projet_id, client_id, related_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        ''', (type, audience, title, message, projet_id, client_id, related_id), returning=True)

    def list_for(self, audience, client_id=None, limit=50, unread_only=False):
        """Newest first, with the project title for display."""
        where, params = _scope(audience, client_id, alias='n.')
        if unread_only:
            where += ' AND n.is_read = FALSE'
        params.append(limit)
        return self.query_all(f'''
            SELECT n.*, p.titre as projet_titre
            FROM notifications n
            LEFT JOIN projects p ON p.id = n.projet_id
            WHERE {where}
            ORDER BY n.created_at DESC, n.id DESC
            LIMIT %s
        ''', params)

    def get_unread_count(self, audience, client_id=None):
        where, params = _scope(audience, client_id)
        return self.query_scalar(
            f'SELECT COUNT(*) as cnt FROM notifications WHERE {where} AND is_read = FALSE',
            params
        )

    def mark_read(self, notification_id, audience, client_id=None):
        """Mark one notification read. Returns the row, or None if not visible to the caller."""
        where, params = _scope(audience, client_id)
        row = self.execute(f'''
            UPDATE notifications SET is_read = TRUE, read_at = CURRENT_TIMESTAMP
            WHERE id = %s AND {where} AND is_read = FALSE
            RETURNING *
        ''', [notification_id] + params, returning=True)
        if row:
            return row
        return self.query_one(
            f'SELECT * FROM notifications WHERE id = %s AND {where}',
            [notification_id] + params
        )

    def mark_all_read(self, audience, client_id=None):
        """Mark every unread notification of the audience read. Returns count updated."""
        where, params = _scope(audience, client_id)
        return self.execute(f'''
            UPDATE notifications SET is_read = TRUE, read_at = CURRENT_TIMESTAMP
            WHERE {where} AND is_read = FALSE
        ''', params)

    def delete_old(self, days=90):
        """Delete read notifications older than N days. Returns count deleted."""
        return self.execute('''
            DELETE FROM notifications
            WHERE is_read = TRUE AND created_at < NOW() - make_interval(days => %s)
        ''', (days,))
