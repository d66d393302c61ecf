"""Projects module: projects, milestones, tasks, tickets, documents (admin portal)."""
from flask import Blueprint

projects_bp = Blueprint('projects', __name__)

from .routes import projects, milestones, tasks, tickets, documents  # noqa: E402, F401
