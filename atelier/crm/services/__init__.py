"""CRM services."""
from .client_service import ClientService
from .prospect_service import ProspectService

__all__ = ['ClientService', 'ProspectService']
