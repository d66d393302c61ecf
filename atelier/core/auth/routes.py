"""Auth routes: login, logout, current user."""
import logging
from urllib.parse import urlencode

from flask import jsonify, request, redirect
from flask_login import login_user, logout_user, current_user

from . import auth_bp
from .context import role_home
from .guards import safe_redirect_target
from .models import User
from .repositories import UserRepository
from atelier.core.utils.api_helpers import error_response, get_payload, RateLimiter

logger = logging.getLogger('atelier.core.auth.routes')

_user_repo = UserRepository()
_auth_limiter = RateLimiter()


def _wants_json():
    return request.is_json or request.accept_mimetypes.best == 'application/json'


def _login_failed(message, status_code):
    if _wants_json():
        return error_response(message, status_code)
    params = {'error': status_code}
    target = request.args.get('redirect') or request.form.get('redirect')
    if target:
        params['redirect'] = target
    return redirect(f'/login?{urlencode(params)}')


@auth_bp.route('/login', methods=['GET'])
def login_page():
    """Login entry point. Already-authenticated users are sent home."""
    if current_user.is_authenticated:
        return redirect(role_home(current_user.role))
    return jsonify({
        'authenticated': False,
        'redirect': request.args.get('redirect'),
    })


@auth_bp.route('/login', methods=['POST'])
def login():
    """Authenticate by email/password (JSON or form body)."""
    allowed, retry_after = _auth_limiter.is_allowed(
        f'login:{request.remote_addr}', max_requests=10, window_seconds=300)
    if not allowed:
        return _login_failed(f'Too many login attempts. Try again in {retry_after} seconds.', 429)

    data = get_payload()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    if not email or not password:
        return _login_failed('Please enter both email and password.', 400)

    user_data = _user_repo.authenticate(email, password)
    if not user_data:
        logger.info(f'Failed login attempt for {email}')
        return _login_failed('Invalid email or password.', 401)

    user = User(user_data)
    if user.role == 'client' and user.client_id is None:
        logger.warning(f'Client account {user.id} has no client_id, login refused')
        return _login_failed('Account is not linked to a client.', 403)

    login_user(user, remember=str(data.get('remember', '')).lower() in ('1', 'true', 'on'))
    _user_repo.update_last_login(user.id)
    logger.info(f'User {email} logged in (role={user.role})')

    requested = request.args.get('redirect') or data.get('redirect')
    target = safe_redirect_target(requested, role_home(user.role))

    if _wants_json():
        return jsonify({'success': True, 'user': user.to_dict(), 'redirect': target})
    return redirect(target)


@auth_bp.route('/logout', methods=['POST'])
def logout():
    if current_user.is_authenticated:
        logger.info(f'User {current_user.email} logged out')
        logout_user()
    if _wants_json():
        return jsonify({'success': True, 'redirect': '/login'})
    return redirect('/login')


@auth_bp.route('/api/auth/current-user')
def api_current_user():
    """Session info for the front end."""
    if current_user.is_authenticated:
        return jsonify({
            'authenticated': True,
            'user': current_user.to_dict(),
            'home': role_home(current_user.role),
        })
    return jsonify({'authenticated': False})
