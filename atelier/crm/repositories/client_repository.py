"""Client Repository - CRUD and lookup for agency clients."""

from atelier.core.base_repository import BaseRepository, like_pattern

CLIENT_FIELDS = ('prenom', 'nom', 'email', 'entreprise', 'telephone', 'ville', 'linkedin_url')


class ClientRepository(BaseRepository):

    def get_all(self):
        """Clients newest first, with their project count."""
        return self.query_all('''
            SELECT c.*, COUNT(p.id) as projects_count
            FROM clients c
            LEFT JOIN projects p ON p.client_id = c.id
            GROUP BY c.id
            ORDER BY c.created_at DESC, c.id DESC
        ''')

    def get_by_id(self, client_id):
        return self.query_one('SELECT * FROM clients WHERE id = %s', (client_id,))

    def get_projects(self, client_id):
        return self.query_all('''
            SELECT * FROM projects
            WHERE client_id = %s
            ORDER BY created_at DESC, id DESC
        ''', (client_id,))

    def create(self, data):
        return self.execute('''
            INSERT INTO clients (prenom, nom, email, entreprise, telephone, ville, linkedin_url)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        ''', tuple(data.get(f) for f in CLIENT_FIELDS), returning=True)

    def update(self, client_id, data):
        return self._update_fields('clients', client_id, data, CLIENT_FIELDS)

    def delete(self, client_id):
        """Delete a client; projects and everything under them cascade."""
        return self.execute('DELETE FROM clients WHERE id = %s RETURNING id', (client_id,),
                            returning=True)

    def search(self, term, limit=5):
        like = like_pattern(term)
        return self.query_all('''
            SELECT id, prenom, nom, email, entreprise
            FROM clients
            WHERE prenom ILIKE %s ESCAPE '\\' OR nom ILIKE %s ESCAPE '\\'
               OR email ILIKE %s ESCAPE '\\' OR entreprise ILIKE %s ESCAPE '\\'
            ORDER BY nom, prenom
            LIMIT %s
        ''', (like, like, like, like, limit))
