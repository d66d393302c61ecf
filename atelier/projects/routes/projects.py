"""Project admin API - projects, dashboard stats, project comments."""

from flask import jsonify

from .. import projects_bp
from ..services import ProjectService, CommentService
from atelier.core.auth.context import Role
from atelier.core.auth.guards import role_required
from atelier.core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, service_response,
)

_project_service = ProjectService()
_comment_service = CommentService()


@projects_bp.route('/admin/api/projects', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_list_projects(portal_session):
    return jsonify({'projects': _project_service.list_projects()})


@projects_bp.route('/admin/api/projects', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_create_project(portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_project_service.create_project(data))


@projects_bp.route('/admin/api/projects/<int:project_id>', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_get_project(project_id, portal_session):
    project = _project_service.get_project(project_id)
    if not project:
        return error_response('Projet introuvable', 404)
    return jsonify({'project': project})


@projects_bp.route('/admin/api/projects/<int:project_id>', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_project(project_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_project_service.update_project(project_id, data))


@projects_bp.route('/admin/api/projects/<int:project_id>/status', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_project_status(project_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_project_service.update_status(project_id, data.get('statut')))


@projects_bp.route('/admin/api/projects/<int:project_id>', methods=['DELETE'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_delete_project(project_id, portal_session):
    return service_response(_project_service.delete_project(project_id))


@projects_bp.route('/admin/api/projects/<int:project_id>/comments', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_project_comments(project_id, portal_session):
    """Every client comment on the project, with task/milestone titles."""
    return jsonify({'comments': _comment_service.list_for_project(project_id)})


@projects_bp.route('/admin/api/dashboard/stats', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_dashboard_stats(portal_session):
    return jsonify(_project_service.get_dashboard_stats())
