"""User Repository - data access for login accounts.

Admins and client contacts share the users table; client accounts carry
the client_id they act for.
"""
from typing import Optional, Dict, Any
from werkzeug.security import generate_password_hash, check_password_hash

from atelier.core.base_repository import BaseRepository


class UserRepository(BaseRepository):
    """Repository for user data access operations."""

    def get_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one('SELECT * FROM users WHERE id = %s', (user_id,))

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get a user by email (case-insensitive)."""
        return self.query_one('SELECT * FROM users WHERE LOWER(email) = LOWER(%s)', (email,))

    def create(self, email: str, password: str, name: str, role: str = 'client',
               client_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Create a login account. Returns the row without the password hash."""
        return self.execute('''
            INSERT INTO users (email, password_hash, name, role, client_id)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id, email, name, role, client_id, is_active, created_at
        ''', (email.strip().lower(), generate_password_hash(password), name, role, client_id),
            returning=True)

    def update_last_login(self, user_id: int) -> bool:
        return self.execute('''
            UPDATE users SET last_login = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (user_id,)) > 0

    # --- Authentication ---

    def authenticate(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """Return the user for valid credentials on an active account, else None."""
        user = self.get_by_email(email)
        if not user or not user.get('is_active', False) or not user.get('password_hash'):
            return None
        if not check_password_hash(user['password_hash'], password):
            return None
        return user
