"""Project Service - projects and the admin dashboard figures."""

import logging

from atelier.projects.repositories import ProjectRepository
from atelier.crm.repositories import ClientRepository, ProspectRepository
from atelier.crm.services.prospect_service import conversion_rate
from atelier.core.queries import (
    ServiceResult, fetch_query, run_mutation, PROJECTS, DASHBOARD_STATS, project_key,
)
from atelier.core.utils.validation import (
    PROJECT_STATUSES, ValidationError, require_fields, check_choice, check_optional_choice,
    parse_date,
)

logger = logging.getLogger('atelier.projects.services.project')

ACTIVE_PROJECT_STATUSES = ('en_cours', 'en_revision')
_DATE_FIELDS = ('date_debut', 'date_fin_prevue', 'date_fin_reelle')


def validate_project(data, partial=False):
    """Normalise dates and links in place; raise ValidationError on bad input."""
    if not partial:
        require_fields(data, 'titre', 'client_id')
    check_optional_choice(data, 'statut', PROJECT_STATUSES)
    for f in _DATE_FIELDS:
        if f in data:
            data[f] = parse_date(data[f], f)
    if data.get('liens_admin') is not None:
        links = data['liens_admin']
        if not isinstance(links, list) or not all(
                isinstance(link, dict) and link.get('url') for link in links):
            raise ValidationError('liens_admin must be a list of {name, url}')
        data['liens_admin'] = [{'name': link.get('name') or link['url'], 'url': link['url']}
                               for link in links]


class ProjectService:

    def __init__(self):
        self.project_repo = ProjectRepository()
        self.client_repo = ClientRepository()
        self.prospect_repo = ProspectRepository()

    def list_projects(self):
        return fetch_query('projects', PROJECTS, self.project_repo.get_all, default=[])

    def get_project(self, project_id):
        return fetch_query('project', project_key(project_id),
                           lambda: self.project_repo.get_by_id(project_id))

    def create_project(self, data) -> ServiceResult:
        validate_project(data)
        if not self.client_repo.get_by_id(data['client_id']):
            return ServiceResult(success=False, error='Client introuvable', status_code=404)
        return run_mutation('project.create', lambda: self.project_repo.create(data))

    def update_project(self, project_id, data) -> ServiceResult:
        """Update and return the project with its client, which also seeds its detail key."""
        validate_project(data, partial=True)

        def _write():
            if not self.project_repo.update(project_id, data):
                return None
            return self.project_repo.get_by_id(project_id)

        return run_mutation('project.update', _write, not_found='Projet introuvable')

    def update_status(self, project_id, statut) -> ServiceResult:
        check_choice(statut, PROJECT_STATUSES, 'statut')
        return run_mutation('project.update_status',
                            lambda: self.project_repo.update_status(project_id, statut),
                            context={'id': project_id}, not_found='Projet introuvable')

    def delete_project(self, project_id) -> ServiceResult:
        return run_mutation('project.delete', lambda: self.project_repo.delete(project_id),
                            context={'id': project_id}, not_found='Projet introuvable')

    def get_dashboard_stats(self):
        return fetch_query('dashboard-stats', DASHBOARD_STATS, self._compute_dashboard_stats)

    def _compute_dashboard_stats(self):
        projects = self.project_repo.get_status_counts()
        prospects = self.prospect_repo.get_status_counts()
        return {
            'active_projects': sum(projects.get(s, 0) for s in ACTIVE_PROJECT_STATUSES),
            'completed_projects': projects.get('termine', 0),
            'total_projects': sum(projects.values()),
            'total_prospects': sum(prospects.values()),
            'qualified_prospects': prospects.get('qualifie', 0) + prospects.get('negocie', 0),
            'conversion_rate': conversion_rate(prospects),
        }
