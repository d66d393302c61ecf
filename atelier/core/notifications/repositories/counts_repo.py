"""Badge counts for the admin sidebar, in one round trip."""

from atelier.core.base_repository import BaseRepository
from atelier.core.utils.validation import INACTIVE_PROSPECT_STATUSES


class CountsRepository(BaseRepository):

    def admin_sidebar_counts(self):
        row = self.query_one('''
            SELECT
                (SELECT COUNT(*) FROM clients) as clients,
                (SELECT COUNT(*) FROM prospects WHERE statut <> ALL(%s)) as prospects,
                (SELECT COUNT(*) FROM projects WHERE statut <> 'termine') as projects,
                (SELECT COUNT(*) FROM tasks WHERE statut IN ('a_faire', 'en_cours')) as tasks,
                (SELECT COUNT(*) FROM notifications
                 WHERE audience = 'admin' AND is_read = FALSE) as notifications
        ''', (list(INACTIVE_PROSPECT_STATUSES),))
        row = row or {}
        return {k: int(row.get(k) or 0)
                for k in ('clients', 'prospects', 'projects', 'tasks', 'notifications')}

    def client_sidebar_counts(self, client_id, project_id):
        """Tasks, documents and tickets of one project plus the client's unread notifications."""
        row = self.query_one('''
            SELECT
                (SELECT COUNT(*) FROM tasks WHERE projet_id = %s) as tasks,
                (SELECT COUNT(*) FROM documents WHERE projet_id = %s) as documents,
                (SELECT COUNT(*) FROM tickets WHERE projet_id = %s) as tickets,
                (SELECT COUNT(*) FROM notifications
                 WHERE audience = 'client' AND client_id = %s AND is_read = FALSE) as notifications
        ''', (project_id, project_id, project_id, client_id))
        row = row or {}
        return {k: int(row.get(k) or 0) for k in ('tasks', 'documents', 'tickets', 'notifications')}
