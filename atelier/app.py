import os
import time
from datetime import timedelta

from flask import Flask, abort, jsonify, redirect, request, send_from_directory

# Structured logging
from atelier.core.utils.logging_config import setup_logging, get_logger
from atelier.config import get_config

_config = get_config()
logger = setup_logging(level=_config.LOG_LEVEL)
app_logger = get_logger('atelier.app')
app_logger.info('Atelier app module loading...')

from flask_compress import Compress  # noqa: E402
from flask_login import LoginManager, current_user  # noqa: E402

from atelier.core.auth.context import Role, role_home  # noqa: E402
from atelier.core.auth.guards import login_url, role_required  # noqa: E402
from atelier.core.auth.models import User  # noqa: E402
from atelier.core.auth.repositories import UserRepository  # noqa: E402
from atelier.database import ping_db  # noqa: E402

_user_repo = UserRepository()

app = Flask(__name__)

# Secret key - required in production, dev fallback only for debug/test runs
_secret_key = _config.SECRET_KEY
if not _secret_key:
    if _config.DEBUG or _config.TESTING:
        _secret_key = 'dev-secret-key-for-local-only'
        app_logger.warning('Using development secret key - set FLASK_SECRET_KEY for production')
    else:
        raise RuntimeError('FLASK_SECRET_KEY environment variable is required')
app.secret_key = _secret_key
app.config['MAX_CONTENT_LENGTH'] = _config.max_upload_bytes * 5
app.config['TESTING'] = _config.TESTING

compress = Compress()
compress.init_app(app)

login_manager = LoginManager()
login_manager.init_app(app)

# Remember Me cookie (30 days) and session cookie hardening
app.config['REMEMBER_COOKIE_DURATION'] = timedelta(days=30)
app.config['REMEMBER_COOKIE_SECURE'] = _config.PRODUCTION
app.config['REMEMBER_COOKIE_HTTPONLY'] = True
app.config['REMEMBER_COOKIE_SAMESITE'] = 'Lax'
app.config['SESSION_COOKIE_SECURE'] = _config.PRODUCTION
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'

# ============== Blueprint Registrations ==============

from atelier.core.auth import auth_bp  # noqa: E402
app.register_blueprint(auth_bp)

from atelier.core.notifications import notifications_bp  # noqa: E402
app.register_blueprint(notifications_bp)

from atelier.crm import crm_bp  # noqa: E402
app.register_blueprint(crm_bp)

from atelier.projects import projects_bp  # noqa: E402
app.register_blueprint(projects_bp)

from atelier.client_portal import client_portal_bp  # noqa: E402
app.register_blueprint(client_portal_bp)

app_logger.info(f'Atelier startup complete - {len(app.url_map._rules)} routes registered')


# ============== Global Error Handlers ==============

def _is_api_path():
    return '/api/' in request.path


@app.errorhandler(404)
def handle_404(e):
    if _is_api_path():
        return jsonify({'success': False, 'error': 'Not found'}), 404
    return redirect('/')


@app.errorhandler(405)
def handle_405(e):
    return jsonify({'success': False, 'error': 'Method not allowed'}), 405


@app.errorhandler(413)
def handle_413(e):
    return jsonify({'success': False, 'error': 'Request too large'}), 413


@app.errorhandler(500)
def handle_500(e):
    app_logger.exception('Unhandled 500 error')
    return jsonify({'success': False, 'error': 'An internal error occurred'}), 500


# ============== Database & Background Scheduler ==============

if not _config.TESTING:
    from atelier.database import init_db
    init_db()
    try:
        from atelier.tasks.scheduler import start_scheduler
        start_scheduler()
    except Exception as e:
        app_logger.warning(f'Failed to start background scheduler: {e}')


# ============== Flask-Login ==============

_user_cache = {}
_USER_CACHE_TTL = 60  # seconds


@login_manager.user_loader
def load_user(user_id):
    """Load user by ID for Flask-Login (cached per-worker, 60s TTL)."""
    uid = int(user_id)
    now = time.time()
    cached = _user_cache.get(uid)
    if cached and (now - cached[1]) < _USER_CACHE_TTL:
        return cached[0]

    user_data = _user_repo.get_by_id(uid)
    if user_data:
        user = User(user_data)
        _user_cache[uid] = (user, now)
        return user
    _user_cache.pop(uid, None)
    return None


@login_manager.unauthorized_handler
def unauthorized():
    if _is_api_path():
        return jsonify({'success': False, 'error': 'Authentication required',
                        'redirect': login_url()}), 401
    return redirect(login_url())


# ============== Health & Portal Entry Points ==============

@app.route('/health')
def health():
    db_ok = ping_db()
    status = 'ok' if db_ok else 'degraded'
    return jsonify({'status': status, 'database': db_ok}), 200 if db_ok else 503


@app.route('/')
def index():
    if current_user.is_authenticated:
        return redirect(role_home(current_user.role))
    return redirect('/login')


_spa_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'static', 'portal')


def _serve_portal(portal_session):
    if request.path.startswith(('/admin/api/', '/app/api/')):
        abort(404)
    index_file = os.path.join(_spa_dir, 'index.html')
    if os.path.exists(index_file):
        return send_from_directory(_spa_dir, 'index.html')
    return jsonify({'portal': portal_session.role.value, 'name': portal_session.name})


@app.route('/admin')
@app.route('/admin/<path:path>')
@role_required(Role.ADMIN)
def admin_portal(portal_session, path=''):
    return _serve_portal(portal_session)


@app.route('/app')
@app.route('/app/<path:path>')
@role_required(Role.CLIENT)
def client_portal(portal_session, path=''):
    return _serve_portal(portal_session)


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(debug=_config.DEBUG, host='0.0.0.0', port=port)
