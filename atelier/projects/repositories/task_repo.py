"""Repository for project tasks."""

from atelier.core.base_repository import BaseRepository

TASK_FIELDS = ('titre', 'description', 'statut', 'priorite', 'assignee', 'date_echeance',
               'milestone_id')


class TaskRepository(BaseRepository):

    def get_by_project(self, project_id):
        return self.query_all('''
            SELECT t.*, m.titre as milestone_titre
            FROM tasks t
            LEFT JOIN milestones m ON m.id = t.milestone_id
            WHERE t.projet_id = %s
            ORDER BY t.date_echeance NULLS LAST, t.created_at DESC
        ''', (project_id,))

    def get_all(self):
        """Every task with its project, client and milestone titles."""
        return self.query_all('''
            SELECT t.*, p.titre as projet_titre, p.client_id,
                   c.prenom as client_prenom, c.nom as client_nom,
                   c.entreprise as client_entreprise,
                   m.titre as milestone_titre
            FROM tasks t
            JOIN projects p ON p.id = t.projet_id
            JOIN clients c ON c.id = p.client_id
            LEFT JOIN milestones m ON m.id = t.milestone_id
            ORDER BY t.date_echeance NULLS LAST, t.created_at DESC
        ''')

    def get_by_id(self, task_id):
        return self.query_one('''
            SELECT t.*, p.client_id
            FROM tasks t
            JOIN projects p ON p.id = t.projet_id
            WHERE t.id = %s
        ''', (task_id,))

    def create(self, data):
        return self.execute('''
            INSERT INTO tasks (projet_id, milestone_id, titre, description, statut,
                               priorite, assignee, date_echeance)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        ''', (data['projet_id'], data.get('milestone_id'), data['titre'],
              data.get('description'), data.get('statut') or 'a_faire',
              data.get('priorite') or 'moyenne', data.get('assignee'),
              data.get('date_echeance')), returning=True)

    def update(self, task_id, data):
        return self._update_fields('tasks', task_id, data, TASK_FIELDS)

    def update_status(self, task_id, statut):
        return self.execute('''
            UPDATE tasks SET statut = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            RETURNING *
        ''', (statut, task_id), returning=True)

    def delete(self, task_id):
        return self.execute('DELETE FROM tasks WHERE id = %s RETURNING id, projet_id, milestone_id',
                            (task_id,), returning=True)
