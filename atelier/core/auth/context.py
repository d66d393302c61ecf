"""Resolved request identity.

Views receive a PortalSession argument instead of reading current_user:
AdminSession for agency staff, ClientSession (carrying client_id) for
client contacts.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class Role(str, Enum):
    ADMIN = 'admin'
    CLIENT = 'client'

    @property
    def home(self):
        """Landing path of the role's portal."""
        return '/admin' if self is Role.ADMIN else '/app'


@dataclass(frozen=True)
class AdminSession:
    user_id: int
    email: str
    name: str
    role: Role = Role.ADMIN


@dataclass(frozen=True)
class ClientSession:
    user_id: int
    email: str
    name: str
    client_id: int
    role: Role = Role.CLIENT


PortalSession = Union[AdminSession, ClientSession]


def session_from_user(user) -> Optional[PortalSession]:
    """Build the session for an authenticated user.

    Returns None for an unknown role or for a client account that isn't
    linked to a client record.
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    if user.role == Role.ADMIN.value:
        return AdminSession(user_id=user.id, email=user.email, name=user.name)
    if user.role == Role.CLIENT.value and user.client_id is not None:
        return ClientSession(user_id=user.id, email=user.email, name=user.name,
                             client_id=user.client_id)
    return None


def role_home(role) -> str:
    try:
        return Role(role).home
    except ValueError:
        return '/login'
