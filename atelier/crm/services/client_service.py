"""Client Service - cached reads and invalidating writes for clients."""

import logging

from atelier.crm.repositories import ClientRepository
from atelier.core.auth.repositories import UserRepository
from atelier.core.queries import (
    ServiceResult, fetch_query, run_mutation, CLIENTS, client_key, client_projects_key,
)
from atelier.core.utils.validation import ValidationError, require_fields

logger = logging.getLogger('atelier.crm.services.client')

MIN_PASSWORD_LENGTH = 8


def validate_client(data, partial=False):
    if not partial:
        require_fields(data, 'prenom', 'nom', 'email')
    email = data.get('email')
    if email is not None and '@' not in str(email):
        raise ValidationError('Adresse email invalide')


class ClientService:

    def __init__(self):
        self.client_repo = ClientRepository()
        self.user_repo = UserRepository()

    def list_clients(self):
        return fetch_query('clients', CLIENTS, self.client_repo.get_all, default=[])

    def get_client(self, client_id):
        return fetch_query('client', client_key(client_id),
                           lambda: self.client_repo.get_by_id(client_id))

    def get_client_projects(self, client_id):
        return fetch_query('client-projects', client_projects_key(client_id),
                           lambda: self.client_repo.get_projects(client_id), default=[])

    def create_client(self, data) -> ServiceResult:
        validate_client(data)
        return run_mutation('client.create', lambda: self.client_repo.create(data))

    def update_client(self, client_id, data) -> ServiceResult:
        validate_client(data, partial=True)
        return run_mutation('client.update', lambda: self.client_repo.update(client_id, data),
                            context={'client_id': client_id}, not_found='Client introuvable')

    def delete_client(self, client_id) -> ServiceResult:
        """Delete a client and, through the schema's cascades, everything it owns."""
        return run_mutation('client.delete', lambda: self.client_repo.delete(client_id),
                            context={'client_id': client_id}, not_found='Client introuvable')

    def create_account(self, client_id, password, email=None, name=None) -> ServiceResult:
        """Give a client a login for the client portal."""
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f'Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères')

        client = self.client_repo.get_by_id(client_id)
        if not client:
            return ServiceResult(success=False, error='Client introuvable', status_code=404)

        email = (email or client['email']).strip().lower()
        if self.user_repo.get_by_email(email):
            return ServiceResult(success=False, error='Un compte existe déjà pour cet email',
                                 status_code=409)

        display_name = name or f"{client['prenom']} {client['nom']}".strip()
        return run_mutation(
            'client.create_account',
            lambda: self.user_repo.create(email, password, display_name, role='client',
                                          client_id=client_id),
            context={'client_id': client_id},
        )
