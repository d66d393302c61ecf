"""Document Service - project files in object storage and client e-signature."""

import logging
from typing import Optional

from atelier.projects.repositories import DocumentRepository, ProjectRepository
from atelier.core.notifications.notify import notify_client
from atelier.core.services.storage_service import (
    StorageService, StorageError, Upload, DOCUMENTS_BUCKET,
)
from atelier.core.queries import (
    ServiceResult, fetch_query, run_mutation, documents_key, documents_to_sign_key,
)
from atelier.core.utils.validation import ValidationError, parse_bool

logger = logging.getLogger('atelier.projects.services.document')


class DocumentService:

    def __init__(self, storage: Optional[StorageService] = None):
        self.document_repo = DocumentRepository()
        self.project_repo = ProjectRepository()
        self.storage = storage or StorageService()

    def list_documents(self, project_id):
        return fetch_query('documents', documents_key(project_id),
                           lambda: self.document_repo.get_by_project(project_id), default=[])

    def list_to_sign(self, project_id):
        return fetch_query('documents-to-sign', documents_to_sign_key(project_id),
                           lambda: self.document_repo.get_to_sign(project_id), default=[])

    def upload_document(self, project_id, upload: Upload, uploaded_by='admin',
                        requires_signature=False) -> ServiceResult:
        """Store the file, then record it. Admin uploads notify the project's client."""
        if upload is None:
            raise ValidationError('Aucun fichier fourni')
        error = upload.validation_error()
        if error:
            raise ValidationError(error)

        project = self.project_repo.get_by_id(project_id)
        if not project:
            return ServiceResult(success=False, error='Projet introuvable', status_code=404)

        try:
            stored = self.storage.upload(DOCUMENTS_BUCKET, project_id, upload.content,
                                         upload.filename, upload.mime_type)
        except StorageError:
            return ServiceResult(success=False, error="Erreur lors de l'upload du document",
                                 status_code=500)

        result = run_mutation('document.upload', lambda: self.document_repo.create(
            project_id, stored, uploaded_by=uploaded_by,
            requires_signature=parse_bool(requires_signature)))
        if not result.success:
            try:
                self.storage.delete(stored['storage_path'])
            except StorageError as e:
                logger.error(f"Orphaned storage object {stored['storage_path']}: {e}")
            return result

        if uploaded_by == 'admin':
            document = result.data
            title = 'Document à signer' if document.get('requires_signature') else 'Nouveau document'
            notify_client(project['client_id'], 'document_uploaded', title,
                          message=document['nom'], projet_id=project_id,
                          related_id=document['id'])
        return result

    def set_requires_signature(self, document_id, requires_signature) -> ServiceResult:
        """Flag (or unflag) a document as awaiting the client's signature."""
        return run_mutation(
            'document.update',
            lambda: self.document_repo.update(
                document_id, {'requires_signature': parse_bool(requires_signature)}),
            not_found='Document introuvable')

    def sign_document(self, document_id, signature_data, client_id=None) -> ServiceResult:
        """Sign a document once.

        client_id restricts signing to documents of that client's projects.
        Signing an already-signed document is a 409.
        """
        if not signature_data or not str(signature_data).strip():
            raise ValidationError('La signature est requise')

        document = self.document_repo.get_by_id(document_id)
        if not document or (client_id is not None and document['client_id'] != client_id):
            return ServiceResult(success=False, error='Document introuvable', status_code=404)
        if document.get('is_signed'):
            return ServiceResult(success=False, error='Ce document a déjà été signé',
                                 status_code=409)
        if not document.get('requires_signature'):
            return ServiceResult(success=False,
                                 error="Ce document ne nécessite pas de signature",
                                 status_code=400)

        result = run_mutation('document.sign',
                              lambda: self.document_repo.sign(document_id, signature_data),
                              context={'projet_id': document['projet_id']})
        if not result.success and result.status_code == 404:
            # lost a race with a concurrent signature
            return ServiceResult(success=False, error='Ce document a déjà été signé',
                                 status_code=409)
        return result

    def delete_document(self, document_id) -> ServiceResult:
        """Delete the storage object first, then the row."""
        document = self.document_repo.get_by_id(document_id)
        if not document:
            return ServiceResult(success=False, error='Document introuvable', status_code=404)
        try:
            self.storage.delete(document.get('storage_path'))
        except StorageError:
            return ServiceResult(success=False, error='Erreur lors de la suppression du document',
                                 status_code=500)
        return run_mutation('document.delete', lambda: self.document_repo.delete(document_id),
                            not_found='Document introuvable')
