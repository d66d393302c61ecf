"""Role gate for the admin and client portals.

    @projects_bp.route('/api/projects')
    @role_required(Role.ADMIN)
    def api_projects(portal_session):
        ...

- not logged in: pages redirect to /login?redirect=<requested path>,
  API calls get 401 JSON carrying the same redirect target
- wrong role: pages redirect to the user's own portal home, API calls
  get 403 JSON with that home as redirect
- a client account with no linked client record is refused with 403

The resolved PortalSession is passed to the view as `portal_session`.
"""
import logging
from functools import wraps
from urllib.parse import urlencode

from flask import jsonify, redirect, request
from flask_login import current_user

from .context import Role, session_from_user

logger = logging.getLogger('atelier.core.auth.guards')


def is_api_request():
    return '/api/' in request.path or request.path.startswith('/api')


def requested_path():
    """Path plus query string of the current request."""
    query = request.query_string.decode('utf-8', 'replace')
    return f'{request.path}?{query}' if query else request.path


def login_url(next_path=None):
    next_path = next_path or requested_path()
    return f'/login?{urlencode({"redirect": next_path})}'


def safe_redirect_target(target, fallback):
    """Only same-site relative paths are honoured after login."""
    if not target or not target.startswith('/') or target.startswith('//') or '\\' in target:
        return fallback
    return target


def _deny(status_code, error, target):
    if is_api_request():
        return jsonify({'success': False, 'error': error, 'redirect': target}), status_code
    return redirect(target)


def role_required(role):
    """Require an authenticated user holding `role`."""
    role = Role(role)

    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            if not current_user.is_authenticated:
                return _deny(401, 'Authentication required', login_url())

            portal_session = session_from_user(current_user)
            if portal_session is None:
                logger.warning(f'User {current_user.id} has no usable portal session '
                               f'(role={getattr(current_user, "role", None)})')
                return jsonify({'success': False, 'error': 'Account is not linked to a client'}), 403

            if portal_session.role is not role:
                return _deny(403, 'Permission denied', portal_session.role.home)

            kwargs['portal_session'] = portal_session
            return f(*args, **kwargs)
        return decorated
    return decorator
