"""Repository for the projects table."""

import logging
from psycopg2.extras import Json

from atelier.core.base_repository import BaseRepository, like_pattern

logger = logging.getLogger('atelier.projects.project_repo')

PROJECT_FIELDS = ('titre', 'description', 'client_id', 'statut', 'date_debut',
                  'date_fin_prevue', 'date_fin_reelle', 'budget', 'liens_admin')

_WITH_CLIENT = '''
    SELECT p.*,
           c.prenom as client_prenom, c.nom as client_nom,
           c.email as client_email, c.entreprise as client_entreprise
    FROM projects p
    JOIN clients c ON c.id = p.client_id
'''


class ProjectRepository(BaseRepository):

    def get_all(self):
        return self.query_all(f'{_WITH_CLIENT} ORDER BY p.created_at DESC, p.id DESC')

    def get_by_id(self, project_id):
        return self.query_one(f'{_WITH_CLIENT} WHERE p.id = %s', (project_id,))

    def create(self, data):
        return self.execute('''
            INSERT INTO projects (titre, description, client_id, statut, date_debut,
                                  date_fin_prevue, date_fin_reelle, budget, liens_admin)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        ''', (data['titre'], data.get('description'), data['client_id'],
              data.get('statut') or 'en_attente', data.get('date_debut'),
              data.get('date_fin_prevue'), data.get('date_fin_reelle'), data.get('budget'),
              Json(data.get('liens_admin') or [])), returning=True)

    def update(self, project_id, data):
        return self._update_fields('projects', project_id, data, PROJECT_FIELDS)

    def update_status(self, project_id, statut):
        """Set the status; moving to 'termine' stamps date_fin_reelle if unset."""
        return self.execute('''
            UPDATE projects
            SET statut = %s,
                date_fin_reelle = CASE
                    WHEN %s = 'termine' THEN COALESCE(date_fin_reelle, CURRENT_DATE)
                    ELSE date_fin_reelle
                END,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            RETURNING *
        ''', (statut, statut, project_id), returning=True)

    def delete(self, project_id):
        return self.execute('DELETE FROM projects WHERE id = %s RETURNING id, client_id',
                            (project_id,), returning=True)

    def get_status_counts(self):
        rows = self.query_all('SELECT statut, COUNT(*) as cnt FROM projects GROUP BY statut')
        return {r['statut']: int(r['cnt']) for r in rows}

    def search(self, term, limit=5):
        like = like_pattern(term)
        return self.query_all('''
            SELECT id, titre, statut, client_id
            FROM projects
            WHERE titre ILIKE %s ESCAPE '\\' OR description ILIKE %s ESCAPE '\\'
            ORDER BY created_at DESC
            LIMIT %s
        ''', (like, like, limit))
