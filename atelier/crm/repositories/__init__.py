"""CRM repositories."""
from .client_repository import ClientRepository
from .prospect_repository import ProspectRepository

__all__ = ['ClientRepository', 'ProspectRepository']
