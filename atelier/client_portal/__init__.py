"""Client portal API (/app/api): a client's own projects, roadmap, tasks, documents, tickets."""
from flask import Blueprint

client_portal_bp = Blueprint('client_portal', __name__)

from . import routes  # noqa: E402, F401
