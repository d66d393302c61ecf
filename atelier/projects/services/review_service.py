"""Review Service - one client review per project."""

import logging

from atelier.projects.repositories import ReviewRepository
from atelier.projects.services.milestone_service import check_milestone_in_project
from atelier.core.notifications.notify import notify_admin
from atelier.core.queries import ServiceResult, fetch_query, run_mutation, reviews_key
from atelier.core.utils.validation import parse_int

logger = logging.getLogger('atelier.projects.services.review')


class ReviewService:

    def __init__(self):
        self.review_repo = ReviewRepository()

    def list_reviews(self, project_id):
        return fetch_query('reviews', reviews_key(project_id),
                           lambda: self.review_repo.get_by_project(project_id), default=[])

    def can_review(self, project_id) -> bool:
        return not self.list_reviews(project_id)

    def create_review(self, project_id, client_id, data) -> ServiceResult:
        note = parse_int(data.get('note'), 'note', minimum=1, maximum=5)
        commentaire = (data.get('commentaire') or '').strip() or None
        milestone_id = data.get('milestone_id')
        if milestone_id not in (None, ''):
            milestone_id = parse_int(milestone_id, 'milestone_id')
        else:
            milestone_id = None

        if self.review_repo.count_for_project(project_id):
            return ServiceResult(success=False, error='Vous avez déjà donné votre avis',
                                 status_code=409)
        rejected = check_milestone_in_project(milestone_id, project_id)
        if rejected:
            return rejected

        result = run_mutation('review.create', lambda: self.review_repo.create(
            project_id, note, commentaire=commentaire, milestone_id=milestone_id))
        if result.success:
            notify_admin('review', f'Nouvel avis client ({note}/5)', message=commentaire,
                         projet_id=project_id, client_id=client_id,
                         related_id=result.data['id'])
        return result
