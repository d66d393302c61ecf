"""Ticket Service - tickets, their attachments and the admin notification.

Attachments are validated before anything is written. The ticket row is
created first; each file is then stored and recorded. A failed attachment
upload leaves the ticket in place and is reported in 'attachment_errors'.
"""

import logging
from typing import List, Optional

from atelier.projects.repositories import (
    TicketRepository, TicketAttachmentRepository, ProjectRepository,
)
from atelier.projects.services.milestone_service import check_milestone_in_project
from atelier.core.notifications.notify import notify_admin
from atelier.core.services.storage_service import (
    StorageService, StorageError, Upload, ATTACHMENTS_BUCKET,
)
from atelier.core.queries import (
    ServiceResult, fetch_query, run_mutation, ALL_TICKETS, tickets_key, ticket_attachments_key,
)
from atelier.core.utils.validation import (
    TICKET_STATUSES, PRIORITIES, AUTHORS, ValidationError, require_fields, check_choice,
    check_optional_choice, parse_int,
)

logger = logging.getLogger('atelier.projects.services.ticket')


def validate_ticket(data, partial=False):
    if not partial:
        require_fields(data, 'titre')
    check_optional_choice(data, 'statut', TICKET_STATUSES)
    check_optional_choice(data, 'priorite', PRIORITIES)
    check_optional_choice(data, 'created_by', AUTHORS)
    if data.get('milestone_id') not in (None, ''):
        data['milestone_id'] = parse_int(data['milestone_id'], 'milestone_id')
    elif 'milestone_id' in data:
        data['milestone_id'] = None


def validate_uploads(files: List[Upload]):
    for f in files:
        error = f.validation_error()
        if error:
            raise ValidationError(f'{f.filename or "fichier"} : {error}')


def ticket_stats(tickets):
    stats = {s: 0 for s in TICKET_STATUSES}
    for t in tickets:
        if t.get('statut') in stats:
            stats[t['statut']] += 1
    stats['total'] = len(tickets)
    stats['open'] = stats['ouvert'] + stats['en_cours']
    return stats


class TicketService:

    def __init__(self, storage: Optional[StorageService] = None):
        self.ticket_repo = TicketRepository()
        self.attachment_repo = TicketAttachmentRepository()
        self.project_repo = ProjectRepository()
        self.storage = storage or StorageService()

    def list_tickets(self, project_id):
        return fetch_query('tickets', tickets_key(project_id),
                           lambda: self.ticket_repo.get_by_project(project_id), default=[])

    def list_all_tickets(self):
        return fetch_query('all-tickets', ALL_TICKETS, self.ticket_repo.get_all, default=[])

    def get_stats(self, project_id):
        return ticket_stats(self.list_tickets(project_id))

    def get_ticket(self, ticket_id):
        return self.ticket_repo.get_by_id(ticket_id)

    def list_attachments(self, ticket_id):
        return fetch_query('ticket-attachments', ticket_attachments_key(ticket_id),
                           lambda: self.attachment_repo.get_by_ticket(ticket_id), default=[])

    def create_ticket(self, project_id, data, created_by='client', files=None,
                      client_id=None) -> ServiceResult:
        """Open a ticket. A client ticket notifies the agency.

        client_id is the submitting client, recorded on its attachments.
        """
        files = files or []
        data['created_by'] = created_by
        validate_ticket(data)
        validate_uploads(files)
        project = self.project_repo.get_by_id(project_id)
        if not project:
            return ServiceResult(success=False, error='Projet introuvable', status_code=404)
        rejected = check_milestone_in_project(data.get('milestone_id'), project_id)
        if rejected:
            return rejected
        data['projet_id'] = project_id

        result = run_mutation('ticket.create', lambda: self.ticket_repo.create(data))
        if not result.success:
            return result

        ticket = result.data
        if files:
            ticket['attachments'], errors = self._store_attachments(ticket['id'], files, client_id)
            if errors:
                ticket['attachment_errors'] = errors

        if created_by == 'client':
            notify_admin('ticket', 'Nouveau ticket', message=ticket['titre'],
                         projet_id=project_id, client_id=project['client_id'],
                         related_id=ticket['id'])
        return result

    def update_ticket(self, ticket_id, data) -> ServiceResult:
        data.pop('created_by', None)
        validate_ticket(data, partial=True)
        if data.get('milestone_id') is not None:
            ticket = self.ticket_repo.get_by_id(ticket_id)
            if not ticket:
                return ServiceResult(success=False, error='Ticket introuvable', status_code=404)
            rejected = check_milestone_in_project(data['milestone_id'], ticket['projet_id'])
            if rejected:
                return rejected
        return run_mutation('ticket.update', lambda: self.ticket_repo.update(ticket_id, data),
                            not_found='Ticket introuvable')

    def update_status(self, ticket_id, statut) -> ServiceResult:
        check_choice(statut, TICKET_STATUSES, 'statut')
        return run_mutation('ticket.update_status',
                            lambda: self.ticket_repo.update_status(ticket_id, statut),
                            not_found='Ticket introuvable')

    def delete_ticket(self, ticket_id) -> ServiceResult:
        """Delete the ticket; its attachment objects are removed from storage first."""
        try:
            for path in self.attachment_repo.get_storage_paths(ticket_id):
                self.storage.delete(path)
        except StorageError:
            return ServiceResult(success=False, error='Erreur lors de la suppression du ticket',
                                 status_code=500)
        return run_mutation('ticket.delete', lambda: self.ticket_repo.delete(ticket_id),
                            not_found='Ticket introuvable')

    def add_attachments(self, ticket_id, files: List[Upload], client_id=None) -> ServiceResult:
        validate_uploads(files)
        if not files:
            raise ValidationError('Aucun fichier fourni')
        if not self.ticket_repo.get_by_id(ticket_id):
            return ServiceResult(success=False, error='Ticket introuvable', status_code=404)
        stored, errors = self._store_attachments(ticket_id, files, client_id)
        if not stored:
            return ServiceResult(success=False, error='; '.join(errors), status_code=500)
        return ServiceResult(success=True, data={'attachments': stored, 'errors': errors},
                             status_code=201, message='Pièce jointe ajoutée')

    def delete_attachment(self, attachment_id) -> ServiceResult:
        attachment = self.attachment_repo.get_by_id(attachment_id)
        if not attachment:
            return ServiceResult(success=False, error='Pièce jointe introuvable', status_code=404)
        try:
            self.storage.delete(attachment.get('storage_path'))
        except StorageError:
            return ServiceResult(success=False,
                                 error='Erreur lors de la suppression de la pièce jointe',
                                 status_code=500)
        return run_mutation('ticket_attachment.delete',
                            lambda: self.attachment_repo.delete(attachment_id),
                            not_found='Pièce jointe introuvable')

    def _store_attachments(self, ticket_id, files, client_id):
        stored, errors = [], []
        for f in files:
            try:
                obj = self.storage.upload(ATTACHMENTS_BUCKET, ticket_id, f.content,
                                          f.filename, f.mime_type)
            except StorageError as e:
                logger.error(f'Attachment {f.filename} for ticket {ticket_id} not stored: {e}')
                errors.append(f'{f.filename} : échec de l\'upload')
                continue
            result = run_mutation(
                'ticket_attachment.create',
                lambda obj=obj: self.attachment_repo.create(ticket_id, obj, client_id))
            if result.success:
                stored.append(result.data)
            else:
                self._discard(obj)
                errors.append(f'{f.filename} : {result.error}')
        return stored, errors

    def _discard(self, obj):
        try:
            self.storage.delete(obj['storage_path'])
        except StorageError as e:
            logger.error(f"Orphaned storage object {obj['storage_path']}: {e}")
