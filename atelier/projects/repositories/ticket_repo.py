"""Repositories for tickets and their attachments."""

from atelier.core.base_repository import BaseRepository

TICKET_FIELDS = ('titre', 'description', 'statut', 'priorite', 'milestone_id')


class TicketRepository(BaseRepository):

    def get_by_project(self, project_id):
        return self.query_all('''
            SELECT t.*, m.titre as milestone_titre,
                   (SELECT COUNT(*) FROM ticket_attachments a WHERE a.ticket_id = t.id)
                       as attachments_count
            FROM tickets t
            LEFT JOIN milestones m ON m.id = t.milestone_id
            WHERE t.projet_id = %s
            ORDER BY t.created_at DESC, t.id DESC
        ''', (project_id,))

    def get_all(self):
        return self.query_all('''
            SELECT t.*, p.titre as projet_titre, p.client_id,
                   c.prenom as client_prenom, c.nom as client_nom,
                   c.entreprise as client_entreprise
            FROM tickets t
            JOIN projects p ON p.id = t.projet_id
            JOIN clients c ON c.id = p.client_id
            ORDER BY t.created_at DESC, t.id DESC
        ''')

    def get_by_id(self, ticket_id):
        return self.query_one('''
            SELECT t.*, p.client_id
            FROM tickets t
            JOIN projects p ON p.id = t.projet_id
            WHERE t.id = %s
        ''', (ticket_id,))

    def create(self, data):
        return self.execute('''
            INSERT INTO tickets (projet_id, milestone_id, titre, description, statut,
                                 priorite, created_by)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        ''', (data['projet_id'], data.get('milestone_id'), data['titre'],
              data.get('description'), data.get('statut') or 'ouvert',
              data.get('priorite') or 'moyenne', data.get('created_by') or 'client'),
            returning=True)

    def update(self, ticket_id, data):
        return self._update_fields('tickets', ticket_id, data, TICKET_FIELDS)

    def update_status(self, ticket_id, statut):
        return self.execute('''
            UPDATE tickets SET statut = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            RETURNING *
        ''', (statut, ticket_id), returning=True)

    def delete(self, ticket_id):
        return self.execute('DELETE FROM tickets WHERE id = %s RETURNING id, projet_id',
                            (ticket_id,), returning=True)

    def get_status_counts(self, project_id):
        rows = self.query_all('''
            SELECT statut, COUNT(*) as cnt FROM tickets
            WHERE projet_id = %s
            GROUP BY statut
        ''', (project_id,))
        return {r['statut']: int(r['cnt']) for r in rows}


class TicketAttachmentRepository(BaseRepository):

    def get_by_ticket(self, ticket_id):
        return self.query_all('''
            SELECT * FROM ticket_attachments
            WHERE ticket_id = %s
            ORDER BY created_at, id
        ''', (ticket_id,))

    def get_by_id(self, attachment_id):
        return self.query_one('SELECT * FROM ticket_attachments WHERE id = %s', (attachment_id,))

    def get_storage_paths(self, ticket_id):
        rows = self.query_all('''
            SELECT storage_path FROM ticket_attachments
            WHERE ticket_id = %s AND storage_path IS NOT NULL
        ''', (ticket_id,))
        return [r['storage_path'] for r in rows]

    def create(self, ticket_id, stored, uploaded_by_client_id=None):
        """stored: the dict returned by StorageService.upload()."""
        return self.execute('''
            INSERT INTO ticket_attachments (ticket_id, nom, type, url, taille, storage_path,
                                            uploaded_by_client_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        ''', (ticket_id, stored['nom'], stored.get('type'), stored.get('url'),
              stored.get('taille'), stored.get('storage_path'), uploaded_by_client_id),
            returning=True)

    def delete(self, attachment_id):
        return self.execute('DELETE FROM ticket_attachments WHERE id = %s RETURNING *',
                            (attachment_id,), returning=True)
