"""Task Service - per-project and global task lists, filters, stats, CRUD.

Task filters are applied in memory on the cached project list so that
changing a filter never costs a round trip.
"""

import logging
from datetime import date
from typing import Optional

from atelier.projects.repositories import TaskRepository, ProjectRepository
from atelier.projects.services.milestone_service import check_milestone_in_project
from atelier.core.notifications.notify import notify_client
from atelier.core.queries import ServiceResult, fetch_query, run_mutation, ALL_TASKS, tasks_key
from atelier.core.utils.validation import (
    TASK_STATUSES, PRIORITIES, require_fields, check_choice, check_optional_choice, parse_date,
    parse_int,
)

logger = logging.getLogger('atelier.projects.services.task')


def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def filter_tasks(tasks, search=None, milestone=None, statut=None, priorite=None,
                 date_from=None, date_to=None):
    """Filter a task list.

    search matches titre or description, case-insensitively. milestone is
    a milestone id. date_from/date_to bound date_echeance inclusively;
    tasks without a due date never match a date bound.
    """
    needle = search.strip().lower() if search else None
    result = []
    for t in tasks:
        if needle and needle not in (t.get('titre') or '').lower() \
                and needle not in (t.get('description') or '').lower():
            continue
        if milestone is not None and t.get('milestone_id') != milestone:
            continue
        if statut and t.get('statut') != statut:
            continue
        if priorite and t.get('priorite') != priorite:
            continue
        if date_from or date_to:
            due = _as_date(t.get('date_echeance'))
            if due is None:
                continue
            if date_from and due < date_from:
                continue
            if date_to and due > date_to:
                continue
        result.append(t)
    return result


def parse_task_filters(args):
    """Build filter_tasks() kwargs from query-string args."""
    statut = args.get('statut') or None
    priorite = args.get('priorite') or None
    if statut:
        check_choice(statut, TASK_STATUSES, 'statut')
    if priorite:
        check_choice(priorite, PRIORITIES, 'priorite')
    milestone = args.get('milestone')
    return {
        'search': args.get('search') or None,
        'milestone': parse_int(milestone, 'milestone') if milestone else None,
        'statut': statut,
        'priorite': priorite,
        'date_from': parse_date(args.get('date_from'), 'date_from'),
        'date_to': parse_date(args.get('date_to'), 'date_to'),
    }


def task_stats(tasks):
    stats = {s: 0 for s in TASK_STATUSES}
    for t in tasks:
        if t.get('statut') in stats:
            stats[t['statut']] += 1
    stats['total'] = len(tasks)
    return stats


def validate_task(data, partial=False):
    if not partial:
        require_fields(data, 'titre')
    check_optional_choice(data, 'statut', TASK_STATUSES)
    check_optional_choice(data, 'priorite', PRIORITIES)
    if 'date_echeance' in data:
        data['date_echeance'] = parse_date(data['date_echeance'], 'date_echeance')
    if data.get('milestone_id') not in (None, ''):
        data['milestone_id'] = parse_int(data['milestone_id'], 'milestone_id')
    elif 'milestone_id' in data:
        data['milestone_id'] = None


class TaskService:

    def __init__(self):
        self.task_repo = TaskRepository()
        self.project_repo = ProjectRepository()

    def list_tasks(self, project_id, **filters):
        tasks = fetch_query('tasks', tasks_key(project_id),
                            lambda: self.task_repo.get_by_project(project_id), default=[])
        return filter_tasks(tasks, **filters) if filters else tasks

    def get_task(self, task_id):
        return self.task_repo.get_by_id(task_id)

    def list_all_tasks(self):
        return fetch_query('all-tasks', ALL_TASKS, self.task_repo.get_all, default=[])

    def get_stats(self, project_id):
        return task_stats(self.list_tasks(project_id))

    def create_task(self, project_id, data) -> ServiceResult:
        validate_task(data)
        project = self.project_repo.get_by_id(project_id)
        if not project:
            return ServiceResult(success=False, error='Projet introuvable', status_code=404)
        rejected = check_milestone_in_project(data.get('milestone_id'), project_id)
        if rejected:
            return rejected
        data['projet_id'] = project_id

        result = run_mutation('task.create', lambda: self.task_repo.create(data))
        if result.success:
            notify_client(project['client_id'], 'task_created', 'Nouvelle tâche',
                          message=result.data['titre'], projet_id=project_id,
                          related_id=result.data['id'])
        return result

    def update_task(self, task_id, data) -> ServiceResult:
        validate_task(data, partial=True)
        if data.get('milestone_id') is not None:
            task = self.task_repo.get_by_id(task_id)
            if not task:
                return ServiceResult(success=False, error='Tâche introuvable', status_code=404)
            rejected = check_milestone_in_project(data['milestone_id'], task['projet_id'])
            if rejected:
                return rejected
        result = run_mutation('task.update', lambda: self.task_repo.update(task_id, data),
                              not_found='Tâche introuvable')
        if result.success:
            self._notify_updated(result.data)
        return result

    def update_status(self, task_id, statut) -> ServiceResult:
        check_choice(statut, TASK_STATUSES, 'statut')
        result = run_mutation('task.update_status',
                              lambda: self.task_repo.update_status(task_id, statut),
                              not_found='Tâche introuvable')
        if result.success:
            self._notify_updated(result.data)
        return result

    def delete_task(self, task_id) -> ServiceResult:
        return run_mutation('task.delete', lambda: self.task_repo.delete(task_id),
                            not_found='Tâche introuvable')

    def _notify_updated(self, task):
        project = self.project_repo.get_by_id(task['projet_id'])
        if not project:
            return
        notify_client(project['client_id'], 'task_updated', 'Tâche mise à jour',
                      message=task['titre'], projet_id=task['projet_id'], related_id=task['id'])
