"""Client portal routes.

Every view is scoped to the logged-in client: the selected project comes
from with_project(), and entity ids taken from the URL are checked
against the client before anything is returned or written.
"""

import logging
from flask import jsonify, request

from . import client_portal_bp
from .project_context import with_project
from atelier.crm.services import ClientService
from atelier.projects.services import (
    MilestoneService, TaskService, TicketService, DocumentService, CommentService, ReviewService,
)
from atelier.projects.services.task_service import parse_task_filters
from atelier.core.auth.context import Role
from atelier.core.auth.guards import role_required
from atelier.core.notifications.service import NotificationService
from atelier.core.services.storage_service import Upload
from atelier.core.utils.api_helpers import (
    error_response, get_json_or_error, get_payload, handle_api_errors, service_response,
)

logger = logging.getLogger('atelier.client_portal.routes')

_client_service = ClientService()
_milestone_service = MilestoneService()
_task_service = TaskService()
_ticket_service = TicketService()
_document_service = DocumentService()
_comment_service = CommentService()
_review_service = ReviewService()
_notification_service = NotificationService()


def _owned(row, portal_session):
    return row is not None and row.get('client_id') == portal_session.client_id


# ════════════════════════════════════════════════════════════════
# Client & projects
# ════════════════════════════════════════════════════════════════

@client_portal_bp.route('/app/api/me', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_current_client(portal_session):
    client = _client_service.get_client(portal_session.client_id)
    if not client:
        return error_response('Client introuvable', 404)
    return jsonify({'client': client, 'user': {'id': portal_session.user_id,
                                               'email': portal_session.email,
                                               'name': portal_session.name}})


@client_portal_bp.route('/app/api/projects', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_client_projects(portal_session):
    return jsonify({'projects': _client_service.get_client_projects(portal_session.client_id)})


@client_portal_bp.route('/app/api/project', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project(required=False)
def api_selected_project(portal_session, project):
    """The active project (?project=<id>, default most recent); null when the client has none."""
    return jsonify({'project': project})


@client_portal_bp.route('/app/api/sidebar-counts', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project(required=False)
def api_client_sidebar_counts(portal_session, project):
    project_id = project['id'] if project else None
    return jsonify(_notification_service.client_sidebar_counts(portal_session, project_id))


# ════════════════════════════════════════════════════════════════
# Roadmap & milestones
# ════════════════════════════════════════════════════════════════

@client_portal_bp.route('/app/api/roadmap', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_roadmap(portal_session, project):
    return jsonify(_milestone_service.get_roadmap(project['id']))


@client_portal_bp.route('/app/api/milestones/<int:milestone_id>', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_milestone_detail(milestone_id, portal_session):
    milestone = _milestone_service.get_milestone(milestone_id)
    if not _owned(milestone, portal_session):
        return error_response('Milestone introuvable', 404)
    detail = _milestone_service.get_milestone_tasks(milestone_id)
    return jsonify({'milestone': milestone, 'tasks': detail['tasks'],
                    'progress': detail['progress']})


# ════════════════════════════════════════════════════════════════
# Tasks
# ════════════════════════════════════════════════════════════════

@client_portal_bp.route('/app/api/tasks', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_tasks(portal_session, project):
    """Query params: search, milestone, statut, priorite, date_from, date_to."""
    tasks = _task_service.list_tasks(project['id'], **parse_task_filters(request.args))
    return jsonify({'tasks': tasks})


@client_portal_bp.route('/app/api/tasks/stats', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_task_stats(portal_session, project):
    return jsonify(_task_service.get_stats(project['id']))


# ════════════════════════════════════════════════════════════════
# Documents
# ════════════════════════════════════════════════════════════════

@client_portal_bp.route('/app/api/documents', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_documents(portal_session, project):
    return jsonify({'documents': _document_service.list_documents(project['id'])})


@client_portal_bp.route('/app/api/documents/to-sign', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_documents_to_sign(portal_session, project):
    return jsonify({'documents': _document_service.list_to_sign(project['id'])})


@client_portal_bp.route('/app/api/documents/<int:document_id>/sign', methods=['POST'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_sign_document(document_id, portal_session):
    """Body: signature_data (e.g. a data-URL of the drawn signature)."""
    data, error = get_json_or_error()
    if error:
        return error
    result = _document_service.sign_document(document_id, data.get('signature_data'),
                                             client_id=portal_session.client_id)
    return service_response(result)


# ════════════════════════════════════════════════════════════════
# Tickets
# ════════════════════════════════════════════════════════════════

@client_portal_bp.route('/app/api/tickets', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_tickets(portal_session, project):
    return jsonify({
        'tickets': _ticket_service.list_tickets(project['id']),
        'stats': _ticket_service.get_stats(project['id']),
    })


@client_portal_bp.route('/app/api/tickets', methods=['POST'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_create_ticket(portal_session, project):
    """JSON, or multipart/form-data with any number of `files`."""
    data = get_payload()
    files = [Upload.from_file_storage(f) for f in request.files.getlist('files') if f.filename]
    result = _ticket_service.create_ticket(project['id'], data, created_by='client',
                                           files=files, client_id=portal_session.client_id)
    return service_response(result)


@client_portal_bp.route('/app/api/tickets/<int:ticket_id>/attachments', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_ticket_attachments(ticket_id, portal_session):
    if not _owned(_ticket_service.get_ticket(ticket_id), portal_session):
        return error_response('Ticket introuvable', 404)
    return jsonify({'attachments': _ticket_service.list_attachments(ticket_id)})


@client_portal_bp.route('/app/api/tickets/<int:ticket_id>/attachments', methods=['POST'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_add_ticket_attachments(ticket_id, portal_session):
    if not _owned(_ticket_service.get_ticket(ticket_id), portal_session):
        return error_response('Ticket introuvable', 404)
    files = [Upload.from_file_storage(f) for f in request.files.getlist('files') if f.filename]
    return service_response(_ticket_service.add_attachments(
        ticket_id, files, client_id=portal_session.client_id))


# ════════════════════════════════════════════════════════════════
# Comments
# ════════════════════════════════════════════════════════════════

@client_portal_bp.route('/app/api/tasks/<int:task_id>/comments', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_task_comments(task_id, portal_session):
    if not _owned(_task_service.get_task(task_id), portal_session):
        return error_response('Tâche introuvable', 404)
    return jsonify({'comments': _comment_service.list_for_task(task_id)})


@client_portal_bp.route('/app/api/milestones/<int:milestone_id>/comments', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_milestone_comments(milestone_id, portal_session):
    if not _owned(_milestone_service.get_milestone(milestone_id), portal_session):
        return error_response('Milestone introuvable', 404)
    return jsonify({'comments': _comment_service.list_for_milestone(milestone_id)})


@client_portal_bp.route('/app/api/comments', methods=['POST'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_create_comment(portal_session, project):
    """Body: content, and exactly one of task_id / milestone_id."""
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(
        _comment_service.create_comment(project['id'], portal_session.client_id, data))


# ════════════════════════════════════════════════════════════════
# Reviews
# ════════════════════════════════════════════════════════════════

@client_portal_bp.route('/app/api/reviews', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_reviews(portal_session, project):
    reviews = _review_service.list_reviews(project['id'])
    return jsonify({'reviews': reviews, 'can_review': not reviews})


@client_portal_bp.route('/app/api/reviews', methods=['POST'])
@role_required(Role.CLIENT)
@handle_api_errors
@with_project()
def api_create_review(portal_session, project):
    """Body: note (1-5), commentaire, milestone_id (optional)."""
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(
        _review_service.create_review(project['id'], portal_session.client_id, data))
