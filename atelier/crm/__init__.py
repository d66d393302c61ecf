"""CRM module: clients, prospects and prospect conversion (admin portal)."""
from flask import Blueprint

crm_bp = Blueprint('crm', __name__)

from . import routes  # noqa: E402, F401
