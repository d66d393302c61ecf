"""Ticket admin API - tickets and their attachments."""

from flask import jsonify

from .. import projects_bp
from ..services import TicketService
from atelier.core.auth.context import Role
from atelier.core.auth.guards import role_required
from atelier.core.utils.api_helpers import get_json_or_error, handle_api_errors, service_response

_ticket_service = TicketService()


@projects_bp.route('/admin/api/tickets', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_all_tickets(portal_session):
    return jsonify({'tickets': _ticket_service.list_all_tickets()})


@projects_bp.route('/admin/api/projects/<int:project_id>/tickets', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_project_tickets(project_id, portal_session):
    return jsonify({
        'tickets': _ticket_service.list_tickets(project_id),
        'stats': _ticket_service.get_stats(project_id),
    })


@projects_bp.route('/admin/api/projects/<int:project_id>/tickets', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_create_ticket(project_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_ticket_service.create_ticket(project_id, data, created_by='admin'))


@projects_bp.route('/admin/api/tickets/<int:ticket_id>', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_ticket(ticket_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_ticket_service.update_ticket(ticket_id, data))


@projects_bp.route('/admin/api/tickets/<int:ticket_id>/status', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_ticket_status(ticket_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_ticket_service.update_status(ticket_id, data.get('statut')))


@projects_bp.route('/admin/api/tickets/<int:ticket_id>', methods=['DELETE'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_delete_ticket(ticket_id, portal_session):
    return service_response(_ticket_service.delete_ticket(ticket_id))


@projects_bp.route('/admin/api/tickets/<int:ticket_id>/attachments', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_ticket_attachments(ticket_id, portal_session):
    return jsonify({'attachments': _ticket_service.list_attachments(ticket_id)})


@projects_bp.route('/admin/api/ticket-attachments/<int:attachment_id>', methods=['DELETE'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_delete_ticket_attachment(attachment_id, portal_session):
    return service_response(_ticket_service.delete_attachment(attachment_id))
