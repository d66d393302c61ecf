"""Prospect Service - pipeline management and conversion to client.

Conversion creates the client, its first project and marks the prospect
'converti' in a single transaction. A login for the new client is then
optionally created; if that step fails the conversion stands and the
failure is reported next to it.
"""

import logging
from typing import Optional

from atelier.crm.repositories import ProspectRepository
from atelier.crm.services.client_service import ClientService
from atelier.core.queries import (
    ServiceResult, fetch_query, run_mutation, PROSPECTS, prospect_key,
)
from atelier.core.utils.validation import (
    PROSPECT_STATUSES, PROSPECT_REQUEST_TYPES, INACTIVE_PROSPECT_STATUSES,
    ValidationError, require_fields, check_choice, check_optional_choice, parse_date,
)

logger = logging.getLogger('atelier.crm.services.prospect')

CONVERSION_ONLY = 'Utilisez la conversion pour passer un prospect en client'


def validate_prospect(data, partial=False):
    if not partial:
        require_fields(data, 'prenom', 'nom', 'email')
    if data.get('email') is not None and '@' not in str(data['email']):
        raise ValidationError('Adresse email invalide')
    check_optional_choice(data, 'statut', PROSPECT_STATUSES)
    if data.get('statut') == 'converti':
        raise ValidationError(CONVERSION_ONLY)
    check_optional_choice(data, 'type_demande', PROSPECT_REQUEST_TYPES)


def is_active_prospect(prospect) -> bool:
    return prospect.get('statut') not in INACTIVE_PROSPECT_STATUSES


def conversion_rate(status_counts) -> int:
    """Percentage of prospects converted, rounded."""
    total = sum(status_counts.values())
    if not total:
        return 0
    return round(status_counts.get('converti', 0) / total * 100)


class ProspectService:

    def __init__(self):
        self.prospect_repo = ProspectRepository()
        self.client_service = ClientService()

    def list_prospects(self, statut: Optional[str] = None, active_only: bool = False):
        """All prospects from the cached list, filtered in memory."""
        if statut:
            check_choice(statut, PROSPECT_STATUSES, 'statut')
        prospects = fetch_query('prospects', PROSPECTS, self.prospect_repo.get_all, default=[])
        if statut:
            prospects = [p for p in prospects if p.get('statut') == statut]
        if active_only:
            prospects = [p for p in prospects if is_active_prospect(p)]
        return prospects

    def get_prospect(self, prospect_id):
        return fetch_query('prospect', prospect_key(prospect_id),
                           lambda: self.prospect_repo.get_by_id(prospect_id))

    def get_stats(self):
        counts = self.prospect_repo.get_status_counts()
        total = sum(counts.values())
        return {
            'total': total,
            'active': sum(v for k, v in counts.items() if k not in INACTIVE_PROSPECT_STATUSES),
            'qualified': counts.get('qualifie', 0) + counts.get('negocie', 0),
            'converted': counts.get('converti', 0),
            'conversion_rate': conversion_rate(counts),
            'by_status': {s: counts.get(s, 0) for s in PROSPECT_STATUSES},
        }

    def create_prospect(self, data) -> ServiceResult:
        validate_prospect(data)
        return run_mutation('prospect.create', lambda: self.prospect_repo.create(data))

    def update_prospect(self, prospect_id, data) -> ServiceResult:
        validate_prospect(data, partial=True)
        return run_mutation('prospect.update',
                            lambda: self.prospect_repo.update(prospect_id, data),
                            not_found='Prospect introuvable')

    def update_status(self, prospect_id, statut) -> ServiceResult:
        """Any status may follow any other; 'converti' is reserved for convert_prospect()."""
        check_choice(statut, PROSPECT_STATUSES, 'statut')
        if statut == 'converti':
            raise ValidationError(CONVERSION_ONLY)
        return run_mutation('prospect.update_status',
                            lambda: self.prospect_repo.update_status(prospect_id, statut),
                            not_found='Prospect introuvable')

    def archive_prospect(self, prospect_id) -> ServiceResult:
        return run_mutation('prospect.archive',
                            lambda: self.prospect_repo.update_status(prospect_id, 'archive'),
                            not_found='Prospect introuvable')

    def delete_prospect(self, prospect_id) -> ServiceResult:
        return run_mutation('prospect.delete', lambda: self.prospect_repo.delete(prospect_id),
                            not_found='Prospect introuvable')

    def convert_prospect(self, prospect_id, data) -> ServiceResult:
        """Prospect -> client + project (+ optional client login).

        data: titre (required), description, date_debut, date_fin_prevue,
              budget, create_account (bool), password
        """
        require_fields(data, 'titre')
        project = {
            'titre': data['titre'].strip(),
            'description': data.get('description'),
            'date_debut': parse_date(data.get('date_debut'), 'date_debut'),
            'date_fin_prevue': parse_date(data.get('date_fin_prevue'), 'date_fin_prevue'),
            'budget': data.get('budget'),
        }
        if data.get('create_account') and not data.get('password'):
            raise ValidationError('Un mot de passe est requis pour créer le compte client')

        result = run_mutation('prospect.convert',
                              lambda: self.prospect_repo.convert(prospect_id, project),
                              not_found='Prospect introuvable')
        if not result.success:
            return result

        client_id = result.data['client']['id']
        logger.info(f'Prospect {prospect_id} converted to client {client_id} '
                    f"(project {result.data['project']['id']})")

        if data.get('create_account'):
            account = self.client_service.create_account(client_id, data['password'])
            if account.success:
                result.data['account'] = account.data
            else:
                logger.warning(f'Account creation failed after converting prospect {prospect_id}: '
                               f'{account.error}')
                result.data['account_error'] = account.error
        return result
