"""Notification center routes for both portals.

Admin: /admin/api/notifications/...   Client: /app/api/notifications/...
Unread counts carry `refresh_interval` so the front end knows how often
to poll them.
"""
from flask import jsonify, request

from . import notifications_bp
from .service import NotificationService, format_badge
from atelier.config import get_config
from atelier.core.auth.context import Role
from atelier.core.auth.guards import role_required
from atelier.core.utils.api_helpers import handle_api_errors, service_response

_service = NotificationService()


def _list(portal_session):
    limit = max(1, min(request.args.get('limit', 50, type=int), 50))
    notifications = _service.list_notifications(portal_session, limit=limit)
    return jsonify({'notifications': notifications})


def _unread(portal_session):
    count = _service.unread_count(portal_session)
    return jsonify({
        'count': count,
        'badge': format_badge(count),
        'refresh_interval': get_config().SIDEBAR_REFRESH_SECONDS,
    })


# ============== Admin ==============

@notifications_bp.route('/admin/api/notifications', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_admin_notifications(portal_session):
    return _list(portal_session)


@notifications_bp.route('/admin/api/notifications/unread-count', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_admin_unread_count(portal_session):
    return _unread(portal_session)


@notifications_bp.route('/admin/api/notifications/<int:notification_id>/read', methods=['POST'])
@role_required(Role.ADMIN)
def api_admin_mark_read(notification_id, portal_session):
    return service_response(_service.mark_read(portal_session, notification_id))


@notifications_bp.route('/admin/api/notifications/read-all', methods=['POST'])
@role_required(Role.ADMIN)
def api_admin_mark_all_read(portal_session):
    return service_response(_service.mark_all_read(portal_session))


@notifications_bp.route('/admin/api/sidebar-counts', methods=['GET'])
@role_required(Role.ADMIN)
@handle_api_errors
def api_admin_sidebar_counts(portal_session):
    """Clients, active prospects/projects/tasks and unread notifications."""
    return jsonify(_service.admin_sidebar_counts())


# ============== Client ==============

@notifications_bp.route('/app/api/notifications', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_client_notifications(portal_session):
    return _list(portal_session)


@notifications_bp.route('/app/api/notifications/unread-count', methods=['GET'])
@role_required(Role.CLIENT)
@handle_api_errors
def api_client_unread_count(portal_session):
    return _unread(portal_session)


@notifications_bp.route('/app/api/notifications/<int:notification_id>/read', methods=['POST'])
@role_required(Role.CLIENT)
def api_client_mark_read(notification_id, portal_session):
    return service_response(_service.mark_read(portal_session, notification_id))


@notifications_bp.route('/app/api/notifications/read-all', methods=['POST'])
@role_required(Role.CLIENT)
def api_client_mark_all_read(portal_session):
    return service_response(_service.mark_all_read(portal_session))
