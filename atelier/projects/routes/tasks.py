"""Task admin API."""

from flask import jsonify, request

from .. import projects_bp
from ..services import TaskService, CommentService
from ..services.task_service import parse_task_filters, task_stats
from atelier.core.auth.context import Role
from atelier.core.auth.guards import role_required
from atelier.core.utils.api_helpers import get_json_or_error, handle_api_errors, service_response

_task_service = TaskService()
_comment_service = CommentService()


@projects_bp.route('/admin/api/tasks', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_all_tasks(portal_session):
    """All tasks across projects, with project, client and milestone titles."""
    tasks = _task_service.list_all_tasks()
    return jsonify({'tasks': tasks, 'stats': task_stats(tasks)})


@projects_bp.route('/admin/api/projects/<int:project_id>/tasks', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_project_tasks(project_id, portal_session):
    """Query params: search, milestone, statut, priorite, date_from, date_to."""
    tasks = _task_service.list_tasks(project_id, **parse_task_filters(request.args))
    return jsonify({'tasks': tasks})


@projects_bp.route('/admin/api/projects/<int:project_id>/tasks/stats', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_project_task_stats(project_id, portal_session):
    return jsonify(_task_service.get_stats(project_id))


@projects_bp.route('/admin/api/projects/<int:project_id>/tasks', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_create_task(project_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_task_service.create_task(project_id, data))


@projects_bp.route('/admin/api/tasks/<int:task_id>', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_task(task_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_task_service.update_task(task_id, data))


@projects_bp.route('/admin/api/tasks/<int:task_id>/status', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_task_status(task_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_task_service.update_status(task_id, data.get('statut')))


@projects_bp.route('/admin/api/tasks/<int:task_id>', methods=['DELETE'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_delete_task(task_id, portal_session):
    return service_response(_task_service.delete_task(task_id))


@projects_bp.route('/admin/api/tasks/<int:task_id>/comments', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_task_comments(task_id, portal_session):
    return jsonify({'comments': _comment_service.list_for_task(task_id)})
