"""Repository for milestones (project phases)."""

from atelier.core.base_repository import BaseRepository

MILESTONE_FIELDS = ('titre', 'description', 'statut', 'date_prevue', 'date_completee', 'ordre')


class MilestoneRepository(BaseRepository):

    def get_by_project(self, project_id):
        """Milestones of a project with per-status task counts, ordered by `ordre`."""
        return self.query_all('''
            SELECT m.*,
                   COUNT(t.id) as tasks_total,
                   COUNT(t.id) FILTER (WHERE t.statut = 'a_faire') as tasks_a_faire,
                   COUNT(t.id) FILTER (WHERE t.statut = 'en_cours') as tasks_en_cours,
                   COUNT(t.id) FILTER (WHERE t.statut = 'termine') as tasks_termine
            FROM milestones m
            LEFT JOIN tasks t ON t.milestone_id = m.id
            WHERE m.projet_id = %s
            GROUP BY m.id
            ORDER BY m.ordre, m.date_prevue NULLS LAST, m.id
        ''', (project_id,))

    def get_by_id(self, milestone_id):
        return self.query_one('''
            SELECT m.*, p.titre as projet_titre, p.client_id,
                   c.prenom as client_prenom, c.nom as client_nom,
                   c.entreprise as client_entreprise
            FROM milestones m
            JOIN projects p ON p.id = m.projet_id
            JOIN clients c ON c.id = p.client_id
            WHERE m.id = %s
        ''', (milestone_id,))

    def get_tasks(self, milestone_id):
        return self.query_all('''
            SELECT * FROM tasks
            WHERE milestone_id = %s
            ORDER BY date_echeance NULLS LAST, created_at
        ''', (milestone_id,))

    def create(self, data):
        return self.execute('''
            INSERT INTO milestones (projet_id, titre, description, statut, date_prevue,
                                    date_completee, ordre)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        ''', (data['projet_id'], data['titre'], data.get('description'),
              data.get('statut') or 'a_faire', data.get('date_prevue'),
              data.get('date_completee'), data.get('ordre') or 0), returning=True)

    def update(self, milestone_id, data):
        return self._update_fields('milestones', milestone_id, data, MILESTONE_FIELDS)

    def delete(self, milestone_id):
        return self.execute('DELETE FROM milestones WHERE id = %s RETURNING id, projet_id',
                            (milestone_id,), returning=True)
