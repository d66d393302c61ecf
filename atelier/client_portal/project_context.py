"""Active project selection for client portal views.

The project comes from `?project=<id>` and defaults to the client's most
recent project. A project the client doesn't own is a 404, never a 403,
so ids of other clients' projects are not revealed.
"""
import logging
from functools import wraps

from flask import request

from atelier.crm.services import ClientService
from atelier.core.utils.api_helpers import error_response
from atelier.core.utils.validation import parse_int

logger = logging.getLogger('atelier.client_portal.project_context')

_client_service = ClientService()


def select_project(client_id, requested=None):
    """(project, projects) for the client. project is None when the client has none.

    Raises LookupError if `requested` isn't one of the client's projects.
    """
    projects = _client_service.get_client_projects(client_id)
    if requested in (None, ''):
        return (projects[0] if projects else None), projects
    project_id = parse_int(requested, 'project')
    for project in projects:
        if project['id'] == project_id:
            return project, projects
    raise LookupError(project_id)


def with_project(required=True):
    """Inject `project` (a dict, or None when optional) after role_required.

        @client_portal_bp.route('/app/api/tasks')
        @role_required(Role.CLIENT)
        @handle_api_errors
        @with_project()
        def api_tasks(portal_session, project):
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            portal_session = kwargs['portal_session']
            try:
                project, _ = select_project(portal_session.client_id, request.args.get('project'))
            except LookupError as e:
                logger.warning(f'Client {portal_session.client_id} requested foreign or '
                               f'unknown project {e.args[0]}')
                return error_response('Projet introuvable', 404)
            if project is None and required:
                return error_response('Aucun projet pour ce client', 404)
            kwargs['project'] = project
            return f(*args, **kwargs)
        return decorated
    return decorator
