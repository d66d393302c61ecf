"""Base Repository - connection handling shared by every repository.

query_one(), query_all(), execute() and execute_many() wrap
get_db()/get_cursor()/release_db() so repositories only hold SQL.

Usage:
    class ClientRepository(BaseRepository):
        def get_by_id(self, client_id):
            return self.query_one('SELECT * FROM clients WHERE id = %s', (client_id,))

        def create(self, data):
            return self.execute(
                'INSERT INTO clients (prenom, nom, email) VALUES (%s, %s, %s) RETURNING *',
                (data['prenom'], data['nom'], data['email']), returning=True
            )

        def convert(self):
            def _work(cursor):
                cursor.execute('INSERT INTO clients ...')
                cursor.execute('INSERT INTO projects ...')
                return cursor.fetchone()
            return self.execute_many(_work)
"""

from psycopg2.extras import Json

from atelier.database import get_db, get_cursor, release_db, dict_from_row


def like_pattern(term):
    """Substring pattern for ILIKE ... ESCAPE '\\', with % and _ in term matched literally."""
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


class BaseRepository:

    def query_one(self, sql, params=None):
        """Execute a SELECT and return a single row as dict, or None."""
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            row = cursor.fetchone()
            return dict_from_row(row) if row else None
        finally:
            release_db(conn)

    def query_all(self, sql, params=None):
        """Execute a SELECT and return all rows as list of dicts."""
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            return [dict_from_row(r) for r in cursor.fetchall()]
        finally:
            release_db(conn)

    def query_scalar(self, sql, params=None, key='cnt', default=0):
        """Execute a SELECT returning one aggregate column."""
        row = self.query_one(sql, params)
        return row[key] if row and row.get(key) is not None else default

    def execute(self, sql, params=None, returning=False):
        """Execute an INSERT/UPDATE/DELETE and commit.

        Returns:
            dict (or None) if returning=True, else int rowcount
        """
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            if returning:
                result = cursor.fetchone()
                conn.commit()
                return dict_from_row(result) if result else None
            conn.commit()
            return cursor.rowcount
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)

    def execute_many(self, callback):
        """Run callback(cursor) inside a single transaction.

        All statements issued by the callback share one connection and
        are committed together, or rolled back together on error.
        """
        conn = get_db()
        try:
            conn.autocommit = False
            cursor = get_cursor(conn)
            result = callback(cursor)
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)

    def _update_fields(self, table, record_id, data, allowed, returning=True):
        """UPDATE only the whitelisted keys present in data.

        Returns the updated row (or None when the id doesn't exist).
        With nothing to update, returns the current row unchanged.
        """
        fields = [k for k in allowed if k in data]
        if not fields:
            return self.query_one(f'SELECT * FROM {table} WHERE id = %s', (record_id,))
        assignments = ', '.join(f'{f} = %s' for f in fields)
        params = [Json(data[f]) if isinstance(data[f], (dict, list)) else data[f]
                  for f in fields] + [record_id]
        return self.execute(f'''
            UPDATE {table} SET {assignments}, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            RETURNING *
        ''', params, returning=returning)
