"""Milestone Service - roadmap, milestone detail with progress, CRUD."""

import logging
from typing import Optional

from atelier.projects.repositories import MilestoneRepository, ProjectRepository
from atelier.core.notifications.notify import notify_client
from atelier.core.queries import (
    ServiceResult, fetch_query, run_mutation, milestones_key, milestone_key, milestone_tasks_key,
)
from atelier.core.utils.validation import (
    MILESTONE_STATUSES, require_fields, check_optional_choice, parse_date, parse_int,
)

logger = logging.getLogger('atelier.projects.services.milestone')

STATUS_LABELS = {'a_faire': 'À faire', 'en_cours': 'En cours', 'termine': 'Terminé'}


def completion_percentage(tasks) -> int:
    """Share of tasks in 'termine', rounded; 0 for no tasks."""
    if not tasks:
        return 0
    done = sum(1 for t in tasks if t.get('statut') == 'termine')
    return round(done / len(tasks) * 100)


def validate_milestone(data, partial=False):
    if not partial:
        require_fields(data, 'titre')
    check_optional_choice(data, 'statut', MILESTONE_STATUSES)
    for f in ('date_prevue', 'date_completee'):
        if f in data:
            data[f] = parse_date(data[f], f)
    if data.get('ordre') is not None:
        data['ordre'] = parse_int(data['ordre'], 'ordre')


def check_milestone_in_project(milestone_id, project_id) -> Optional[ServiceResult]:
    """404 result when milestone_id is set and is not a milestone of project_id."""
    if milestone_id is None:
        return None
    milestone = MilestoneRepository().get_by_id(milestone_id)
    if not milestone or milestone['projet_id'] != project_id:
        return ServiceResult(success=False, error='Milestone introuvable', status_code=404)
    return None


class MilestoneService:

    def __init__(self):
        self.milestone_repo = MilestoneRepository()
        self.project_repo = ProjectRepository()

    def list_milestones(self, project_id):
        return fetch_query('milestones', milestones_key(project_id),
                           lambda: self.milestone_repo.get_by_project(project_id), default=[])

    def get_roadmap(self, project_id):
        """Milestones in order plus how many sit in each status.

        A project without milestones yields an empty roadmap.
        """
        milestones = self.list_milestones(project_id)
        by_status = {s: 0 for s in MILESTONE_STATUSES}
        for m in milestones:
            m['progress'] = (round(m['tasks_termine'] / m['tasks_total'] * 100)
                             if m.get('tasks_total') else 0)
            if m.get('statut') in by_status:
                by_status[m['statut']] += 1
        return {'milestones': milestones, 'by_status': by_status, 'total': len(milestones)}

    def get_milestone(self, milestone_id):
        return fetch_query('milestone', milestone_key(milestone_id),
                           lambda: self.milestone_repo.get_by_id(milestone_id))

    def get_milestone_tasks(self, milestone_id):
        tasks = fetch_query('milestone-tasks', milestone_tasks_key(milestone_id),
                            lambda: self.milestone_repo.get_tasks(milestone_id), default=[])
        return {'tasks': tasks, 'progress': completion_percentage(tasks)}

    def create_milestone(self, project_id, data) -> ServiceResult:
        validate_milestone(data)
        project = self.project_repo.get_by_id(project_id)
        if not project:
            return ServiceResult(success=False, error='Projet introuvable', status_code=404)
        data['projet_id'] = project_id

        result = run_mutation('milestone.create', lambda: self.milestone_repo.create(data))
        if result.success:
            notify_client(project['client_id'], 'milestone_created', 'Nouvelle étape',
                          message=result.data['titre'], projet_id=project_id,
                          related_id=result.data['id'])
        return result

    def update_milestone(self, milestone_id, data) -> ServiceResult:
        validate_milestone(data, partial=True)
        result = run_mutation('milestone.update',
                              lambda: self.milestone_repo.update(milestone_id, data),
                              not_found='Milestone introuvable')
        if result.success:
            milestone = result.data
            project = self.project_repo.get_by_id(milestone['projet_id'])
            if project:
                label = STATUS_LABELS.get(milestone['statut'], milestone['statut'])
                notify_client(project['client_id'], 'milestone_updated', 'Étape mise à jour',
                              message=f"{milestone['titre']} : {label}",
                              projet_id=milestone['projet_id'], related_id=milestone_id)
        return result

    def delete_milestone(self, milestone_id) -> ServiceResult:
        return run_mutation('milestone.delete', lambda: self.milestone_repo.delete(milestone_id),
                            not_found='Milestone introuvable')
