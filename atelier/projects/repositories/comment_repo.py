"""Repository for client comments on tasks and milestones."""

from atelier.core.base_repository import BaseRepository

_SELECT = '''
    SELECT cm.*, c.prenom as author_prenom, c.nom as author_nom,
           t.titre as task_titre, m.titre as milestone_titre
    FROM comments cm
    JOIN clients c ON c.id = cm.created_by_client_id
    LEFT JOIN tasks t ON t.id = cm.task_id
    LEFT JOIN milestones m ON m.id = cm.milestone_id
'''


class CommentRepository(BaseRepository):

    def get_for_task(self, task_id):
        return self.query_all(f'{_SELECT} WHERE cm.task_id = %s ORDER BY cm.created_at, cm.id',
                              (task_id,))

    def get_for_milestone(self, milestone_id):
        return self.query_all(
            f'{_SELECT} WHERE cm.milestone_id = %s ORDER BY cm.created_at, cm.id',
            (milestone_id,))

    def get_for_project(self, project_id):
        return self.query_all(
            f'{_SELECT} WHERE cm.projet_id = %s ORDER BY cm.created_at DESC, cm.id DESC',
            (project_id,))

    def create(self, projet_id, content, client_id, task_id=None, milestone_id=None):
        return self.execute('''
            INSERT INTO comments (projet_id, task_id, milestone_id, content, created_by_client_id)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING *
        ''', (projet_id, task_id, milestone_id, content, client_id), returning=True)
