"""Atelier auth models.

User model for Flask-Login.
"""
from flask_login import UserMixin


class User(UserMixin):
    """Logged-in user: an agency admin or a client contact."""

    def __init__(self, user_data):
        self.id = user_data['id']
        self.email = user_data['email']
        self.name = user_data['name']
        self.role = user_data.get('role', 'client')
        self.client_id = user_data.get('client_id')
        self.is_active_user = user_data.get('is_active', True)

    @property
    def is_active(self):
        return self.is_active_user

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'client_id': self.client_id,
            'is_active': self.is_active,
        }
