"""Milestone admin API."""

from flask import jsonify

from .. import projects_bp
from ..services import MilestoneService, CommentService
from atelier.core.auth.context import Role
from atelier.core.auth.guards import role_required
from atelier.core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, service_response,
)

_milestone_service = MilestoneService()
_comment_service = CommentService()


@projects_bp.route('/admin/api/projects/<int:project_id>/milestones', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_list_milestones(project_id, portal_session):
    return jsonify(_milestone_service.get_roadmap(project_id))


@projects_bp.route('/admin/api/projects/<int:project_id>/milestones', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_create_milestone(project_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_milestone_service.create_milestone(project_id, data))


@projects_bp.route('/admin/api/milestones/<int:milestone_id>', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_get_milestone(milestone_id, portal_session):
    """Milestone with project/client, its tasks and completion percentage."""
    milestone = _milestone_service.get_milestone(milestone_id)
    if not milestone:
        return error_response('Milestone introuvable', 404)
    detail = _milestone_service.get_milestone_tasks(milestone_id)
    return jsonify({
        'milestone': milestone,
        'tasks': detail['tasks'],
        'progress': detail['progress'],
        'comments': _comment_service.list_for_milestone(milestone_id),
    })


@projects_bp.route('/admin/api/milestones/<int:milestone_id>', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_milestone(milestone_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_milestone_service.update_milestone(milestone_id, data))


@projects_bp.route('/admin/api/milestones/<int:milestone_id>', methods=['DELETE'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_delete_milestone(milestone_id, portal_session):
    return service_response(_milestone_service.delete_milestone(milestone_id))
