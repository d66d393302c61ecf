"""CRM admin API - clients, prospects, conversion and global search."""

import logging
from flask import jsonify, request

from . import crm_bp
from .repositories import ClientRepository, ProspectRepository
from .services import ClientService, ProspectService
from atelier.core.auth.context import Role
from atelier.core.auth.guards import role_required
from atelier.core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, service_response,
)
from atelier.core.utils.validation import parse_bool

logger = logging.getLogger('atelier.crm.routes')

_client_service = ClientService()
_prospect_service = ProspectService()
_client_repo = ClientRepository()
_prospect_repo = ProspectRepository()


# ════════════════════════════════════════════════════════════════
# Clients
# ════════════════════════════════════════════════════════════════

@crm_bp.route('/admin/api/clients', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_list_clients(portal_session):
    return jsonify({'clients': _client_service.list_clients()})


@crm_bp.route('/admin/api/clients', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_create_client(portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_client_service.create_client(data))


@crm_bp.route('/admin/api/clients/<int:client_id>', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_get_client(client_id, portal_session):
    client = _client_service.get_client(client_id)
    if not client:
        return error_response('Client introuvable', 404)
    return jsonify({'client': client})


@crm_bp.route('/admin/api/clients/<int:client_id>', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_client(client_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_client_service.update_client(client_id, data))


@crm_bp.route('/admin/api/clients/<int:client_id>', methods=['DELETE'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_delete_client(client_id, portal_session):
    return service_response(_client_service.delete_client(client_id))


@crm_bp.route('/admin/api/clients/<int:client_id>/projects', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_client_projects(client_id, portal_session):
    return jsonify({'projects': _client_service.get_client_projects(client_id)})


@crm_bp.route('/admin/api/clients/<int:client_id>/account', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_create_client_account(client_id, portal_session):
    """Create the client's portal login. Body: password, optional email/name."""
    data, error = get_json_or_error()
    if error:
        return error
    result = _client_service.create_account(
        client_id, data.get('password'), email=data.get('email'), name=data.get('name'))
    return service_response(result)


# ════════════════════════════════════════════════════════════════
# Prospects
# ════════════════════════════════════════════════════════════════

@crm_bp.route('/admin/api/prospects', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_list_prospects(portal_session):
    """Query params: statut, active (true hides converti/perdu/archive)."""
    prospects = _prospect_service.list_prospects(
        statut=request.args.get('statut') or None,
        active_only=parse_bool(request.args.get('active', 'false')),
    )
    return jsonify({'prospects': prospects})


@crm_bp.route('/admin/api/prospects', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_create_prospect(portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_prospect_service.create_prospect(data))


@crm_bp.route('/admin/api/prospects/stats', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_prospect_stats(portal_session):
    return jsonify(_prospect_service.get_stats())


@crm_bp.route('/admin/api/prospects/<int:prospect_id>', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_get_prospect(prospect_id, portal_session):
    prospect = _prospect_service.get_prospect(prospect_id)
    if not prospect:
        return error_response('Prospect introuvable', 404)
    return jsonify({'prospect': prospect})


@crm_bp.route('/admin/api/prospects/<int:prospect_id>', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_prospect(prospect_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_prospect_service.update_prospect(prospect_id, data))


@crm_bp.route('/admin/api/prospects/<int:prospect_id>/status', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_update_prospect_status(prospect_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_prospect_service.update_status(prospect_id, data.get('statut')))


@crm_bp.route('/admin/api/prospects/<int:prospect_id>/archive', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_archive_prospect(prospect_id, portal_session):
    return service_response(_prospect_service.archive_prospect(prospect_id))


@crm_bp.route('/admin/api/prospects/<int:prospect_id>', methods=['DELETE'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_delete_prospect(prospect_id, portal_session):
    return service_response(_prospect_service.delete_prospect(prospect_id))


@crm_bp.route('/admin/api/prospects/<int:prospect_id>/convert', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_convert_prospect(prospect_id, portal_session):
    """Body: titre, description, date_debut, date_fin_prevue, budget, create_account, password."""
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_prospect_service.convert_prospect(prospect_id, data))


# ════════════════════════════════════════════════════════════════
# Search
# ════════════════════════════════════════════════════════════════

@crm_bp.route('/admin/api/search', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_search(portal_session):
    """Case-insensitive search over clients, prospects and projects (5 each)."""
    term = request.args.get('q', '').strip()
    if len(term) < 2:
        return jsonify({'clients': [], 'prospects': [], 'projects': []})

    from atelier.projects.repositories import ProjectRepository
    return jsonify({
        'clients': _client_repo.search(term),
        'prospects': _prospect_repo.search(term),
        'projects': ProjectRepository().search(term),
    })
