"""Shared API utilities - error helpers, service-result responses, rate limiter, request validation."""
import time
import logging
import threading
from collections import defaultdict
from functools import wraps

from flask import jsonify, request

logger = logging.getLogger('atelier.api')


# ============== Request Validation ==============

def get_json_or_error():
    """Get JSON from request body with null check.

    Returns (data, error_response) tuple. Caller pattern:
        data, error = get_json_or_error()
        if error:
            return error
    """
    data = request.get_json(silent=True)
    if data is None:
        return None, error_response('Invalid or missing JSON body', 400)
    return data, None


def get_payload():
    """JSON body when present, else form fields, else an empty dict."""
    data = request.get_json(silent=True)
    if data is not None:
        return data
    return request.form.to_dict() if request.form else {}


# ============== Error Handling ==============

def error_response(message, status_code=400, **extra):
    """Standard error envelope: {'success': False, 'error': message}."""
    body = {'success': False, 'error': message}
    body.update(extra)
    return jsonify(body), status_code


def safe_error_response(e, status_code=500):
    """Return an error response without leaking DB internals.

    - ValueError/KeyError: str(e) as 400 (business validation, safe to expose)
    - Everything else: logs the full exception, returns a generic message
    """
    if isinstance(e, (ValueError, KeyError)):
        return jsonify({'success': False, 'error': str(e)}), 400

    logger.exception('Unhandled error in API route')
    return jsonify({'success': False, 'error': 'An internal error occurred'}), status_code


def handle_api_errors(f):
    """Route decorator: any uncaught exception becomes safe_error_response()."""
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except Exception as e:
            return safe_error_response(e)
    return decorated


def service_response(result, success_code=None):
    """Turn a ServiceResult into a JSON response.

    Success: {'success': True, 'data': ..., 'message': ...}
    Failure: {'success': False, 'error': ...} with the result's status code.
    """
    if not result.success:
        return error_response(result.error, result.status_code)
    body = {'success': True, 'data': result.data}
    if getattr(result, 'message', None):
        body['message'] = result.message
    return jsonify(body), success_code or result.status_code


# ============== Rate Limiter ==============

class RateLimiter:
    """In-memory sliding-window rate limiter.

    State is per worker process; with N gunicorn workers a client can get
    up to N times the limit. Fine for login throttling.
    """

    def __init__(self):
        self._requests = defaultdict(list)
        self._lock = threading.Lock()

    def is_allowed(self, key, max_requests=10, window_seconds=60):
        """Check and record a request for `key`.

        Returns:
            (is_allowed: bool, retry_after: int) tuple
        """
        now = time.time()
        window_start = now - window_seconds

        with self._lock:
            self._requests[key] = [ts for ts in self._requests[key] if ts > window_start]

            if len(self._requests[key]) >= max_requests:
                oldest = min(self._requests[key])
                retry_after = int(oldest + window_seconds - now) + 1
                return False, max(1, retry_after)

            self._requests[key].append(now)
            return True, 0

    def reset(self, key=None):
        with self._lock:
            if key is None:
                self._requests.clear()
            else:
                self._requests.pop(key, None)
