"""Atelier authentication.

Login/logout, the role gate shared by both portals, and client account
management.
"""
from flask import Blueprint

auth_bp = Blueprint('auth', __name__)

from . import routes  # noqa: E402, F401
