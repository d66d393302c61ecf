"""Prospect Repository - sales leads, pipeline stats and conversion."""

from atelier.core.base_repository import BaseRepository, like_pattern
from atelier.database import dict_from_row
from atelier.core.utils.validation import INACTIVE_PROSPECT_STATUSES

PROSPECT_FIELDS = (
    'prenom', 'nom', 'email', 'telephone', 'entreprise', 'ville', 'type_demande',
    'budget_range', 'echeance_souhaitee', 'description_projet', 'statut', 'source',
    'resume_auto', 'notes_internes', 'discovery_call_resume', 'proposal_doc_url',
    'quote_doc_url',
)


class ProspectRepository(BaseRepository):

    def get_all(self, statut=None, active_only=False):
        conditions, params = [], []
        if statut:
            conditions.append('statut = %s')
            params.append(statut)
        if active_only:
            conditions.append('statut <> ALL(%s)')
            params.append(list(INACTIVE_PROSPECT_STATUSES))
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ''
        return self.query_all(f'''
            SELECT * FROM prospects
            {where}
            ORDER BY created_at DESC, id DESC
        ''', params)

    def get_by_id(self, prospect_id):
        return self.query_one('SELECT * FROM prospects WHERE id = %s', (prospect_id,))

    def create(self, data):
        fields = [f for f in PROSPECT_FIELDS if data.get(f) is not None]
        placeholders = ', '.join(['%s'] * len(fields))
        return self.execute(f'''
            INSERT INTO prospects ({', '.join(fields)})
            VALUES ({placeholders})
            RETURNING *
        ''', [data[f] for f in fields], returning=True)

    def update(self, prospect_id, data):
        return self._update_fields('prospects', prospect_id, data, PROSPECT_FIELDS)

    def update_status(self, prospect_id, statut):
        return self.execute('''
            UPDATE prospects SET statut = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            RETURNING *
        ''', (statut, prospect_id), returning=True)

    def delete(self, prospect_id):
        return self.execute('DELETE FROM prospects WHERE id = %s RETURNING id', (prospect_id,),
                            returning=True)

    def get_status_counts(self):
        """{statut: count} over every prospect."""
        rows = self.query_all('SELECT statut, COUNT(*) as cnt FROM prospects GROUP BY statut')
        return {r['statut']: int(r['cnt']) for r in rows}

    def search(self, term, limit=5):
        like = like_pattern(term)
        return self.query_all('''
            SELECT id, prenom, nom, email, entreprise, statut
            FROM prospects
            WHERE prenom ILIKE %s ESCAPE '\\' OR nom ILIKE %s ESCAPE '\\'
               OR email ILIKE %s ESCAPE '\\' OR entreprise ILIKE %s ESCAPE '\\'
            ORDER BY created_at DESC
            LIMIT %s
        ''', (like, like, like, like, limit))

    def convert(self, prospect_id, project):
        """Create a client and its first project from a prospect, in one transaction.

        The prospect is kept, marked 'converti' and linked to the new rows.
        Returns {'client', 'project', 'prospect'}, or None if the prospect
        doesn't exist. Raises ValueError if it was already converted.
        """
        def _work(cursor):
            cursor.execute('SELECT * FROM prospects WHERE id = %s FOR UPDATE', (prospect_id,))
            prospect = cursor.fetchone()
            if not prospect:
                return None
            if prospect['statut'] == 'converti':
                raise ValueError('Ce prospect a déjà été converti')

            cursor.execute('''
                INSERT INTO clients (prenom, nom, email, entreprise, telephone, ville)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING *
            ''', (prospect['prenom'], prospect['nom'], prospect['email'],
                  prospect.get('entreprise'), prospect.get('telephone'), prospect.get('ville')))
            client = cursor.fetchone()

            cursor.execute('''
                INSERT INTO projects (titre, description, client_id, statut, date_debut,
                                      date_fin_prevue, budget)
                VALUES (%s, %s, %s, 'en_attente', %s, %s, %s)
                RETURNING *
            ''', (project['titre'],
                  project.get('description') or prospect.get('description_projet'),
                  client['id'], project.get('date_debut'), project.get('date_fin_prevue'),
                  project.get('budget')))
            new_project = cursor.fetchone()

            cursor.execute('''
                UPDATE prospects
                SET statut = 'converti', converted_client_id = %s, converted_project_id = %s,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = %s
                RETURNING *
            ''', (client['id'], new_project['id'], prospect_id))
            updated = cursor.fetchone()

            return {
                'client': dict_from_row(client),
                'project': dict_from_row(new_project),
                'prospect': dict_from_row(updated),
            }

        return self.execute_many(_work)
