"""Comment Service - client comments on tasks and milestones."""

import logging

from atelier.projects.repositories import CommentRepository, TaskRepository, MilestoneRepository
from atelier.core.notifications.notify import notify_admin
from atelier.core.queries import ServiceResult, fetch_query, run_mutation, comments_key
from atelier.core.utils.validation import ValidationError, parse_int

logger = logging.getLogger('atelier.projects.services.comment')

MAX_COMMENT_LENGTH = 5000


class CommentService:

    def __init__(self):
        self.comment_repo = CommentRepository()
        self.task_repo = TaskRepository()
        self.milestone_repo = MilestoneRepository()

    def list_for_task(self, task_id):
        return fetch_query('comments', comments_key('task', task_id),
                           lambda: self.comment_repo.get_for_task(task_id), default=[])

    def list_for_milestone(self, milestone_id):
        return fetch_query('comments', comments_key('milestone', milestone_id),
                           lambda: self.comment_repo.get_for_milestone(milestone_id), default=[])

    def list_for_project(self, project_id):
        return fetch_query('project-comments', comments_key('project', project_id),
                           lambda: self.comment_repo.get_for_project(project_id), default=[])

    def create_comment(self, project_id, client_id, data) -> ServiceResult:
        """Add a client comment to exactly one task or milestone of the project."""
        content = (data.get('content') or '').strip()
        if not content:
            raise ValidationError('Le commentaire ne peut pas être vide')
        if len(content) > MAX_COMMENT_LENGTH:
            raise ValidationError(f'Le commentaire dépasse {MAX_COMMENT_LENGTH} caractères')

        task_id = data.get('task_id')
        milestone_id = data.get('milestone_id')
        if (task_id is None) == (milestone_id is None):
            raise ValidationError('Indiquez soit task_id soit milestone_id')

        if task_id is not None:
            task_id = parse_int(task_id, 'task_id')
            target = self.task_repo.get_by_id(task_id)
            target_label = 'Tâche introuvable'
        else:
            milestone_id = parse_int(milestone_id, 'milestone_id')
            target = self.milestone_repo.get_by_id(milestone_id)
            target_label = 'Milestone introuvable'
        if not target or target['projet_id'] != project_id:
            return ServiceResult(success=False, error=target_label, status_code=404)

        result = run_mutation('comment.create', lambda: self.comment_repo.create(
            project_id, content, client_id, task_id=task_id, milestone_id=milestone_id))
        if result.success:
            notify_admin('comment', f"Nouveau commentaire sur « {target['titre']} »",
                         message=content[:200], projet_id=project_id, client_id=client_id,
                         related_id=result.data['id'])
        return result
