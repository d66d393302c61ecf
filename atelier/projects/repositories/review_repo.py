"""Repository for client reviews."""

from atelier.core.base_repository import BaseRepository


class ReviewRepository(BaseRepository):

    def get_by_project(self, project_id):
        return self.query_all('''
            SELECT * FROM reviews
            WHERE projet_id = %s
            ORDER BY created_at DESC, id DESC
        ''', (project_id,))

    def count_for_project(self, project_id):
        return self.query_scalar('SELECT COUNT(*) as cnt FROM reviews WHERE projet_id = %s',
                                 (project_id,))

    def create(self, projet_id, note, commentaire=None, milestone_id=None):
        return self.execute('''
            INSERT INTO reviews (projet_id, milestone_id, note, commentaire)
            VALUES (%s, %s, %s, %s)
            RETURNING *
        ''', (projet_id, milestone_id, note, commentaire), returning=True)
