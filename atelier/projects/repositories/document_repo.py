"""Repository for project documents and e-signatures."""

from atelier.core.base_repository import BaseRepository

DOCUMENT_FIELDS = ('nom', 'requires_signature')


class DocumentRepository(BaseRepository):

    def get_by_project(self, project_id):
        return self.query_all('''
            SELECT * FROM documents
            WHERE projet_id = %s
            ORDER BY created_at DESC, id DESC
        ''', (project_id,))

    def get_to_sign(self, project_id):
        return self.query_all('''
            SELECT * FROM documents
            WHERE projet_id = %s AND requires_signature = TRUE AND is_signed = FALSE
            ORDER BY created_at DESC, id DESC
        ''', (project_id,))

    def get_by_id(self, document_id):
        return self.query_one('''
            SELECT d.*, p.client_id
            FROM documents d
            JOIN projects p ON p.id = d.projet_id
            WHERE d.id = %s
        ''', (document_id,))

    def create(self, projet_id, stored, uploaded_by='admin', requires_signature=False):
        """stored: the dict returned by StorageService.upload()."""
        return self.execute('''
            INSERT INTO documents (projet_id, nom, type, url, taille, storage_path,
                                   uploaded_by, requires_signature)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        ''', (projet_id, stored['nom'], stored.get('type'), stored.get('url'),
              stored.get('taille'), stored.get('storage_path'), uploaded_by,
              bool(requires_signature)), returning=True)

    def update(self, document_id, data):
        return self._update_fields('documents', document_id, data, DOCUMENT_FIELDS)

    def sign(self, document_id, signature_data):
        """Sign once. None when the document is missing or already signed."""
        return self.execute('''
            UPDATE documents
            SET is_signed = TRUE, signed_at = CURRENT_TIMESTAMP, signature_data = %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %s AND is_signed = FALSE
            RETURNING *
        ''', (signature_data, document_id), returning=True)

    def delete(self, document_id):
        return self.execute('DELETE FROM documents WHERE id = %s RETURNING id, projet_id',
                            (document_id,), returning=True)
