"""Document admin API - upload, signature request, delete."""

from flask import jsonify, request

from .. import projects_bp
from ..services import DocumentService
from atelier.core.auth.context import Role
from atelier.core.auth.guards import role_required
from atelier.core.services.storage_service import Upload
from atelier.core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, service_response,
)

_document_service = DocumentService()


@projects_bp.route('/admin/api/projects/<int:project_id>/documents', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_project_documents(project_id, portal_session):
    return jsonify({'documents': _document_service.list_documents(project_id)})


@projects_bp.route('/admin/api/projects/<int:project_id>/documents', methods=['POST'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_upload_document(project_id, portal_session):
    """multipart/form-data: file, requires_signature (optional)."""
    file = request.files.get('file')
    if not file or not file.filename:
        return error_response('Aucun fichier fourni', 400)
    result = _document_service.upload_document(
        project_id, Upload.from_file_storage(file), uploaded_by='admin',
        requires_signature=request.form.get('requires_signature', 'false'))
    return service_response(result)


@projects_bp.route('/admin/api/documents/<int:document_id>/signature', methods=['PUT'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_document_signature_flag(document_id, portal_session):
    data, error = get_json_or_error()
    if error:
        return error
    result = _document_service.set_requires_signature(
        document_id, data.get('requires_signature', True))
    return service_response(result)


@projects_bp.route('/admin/api/documents/<int:document_id>', methods=['DELETE'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_delete_document(document_id, portal_session):
    return service_response(_document_service.delete_document(document_id))
