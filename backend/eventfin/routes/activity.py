# Overview: Flask API routes for activity logs and notifications; parses input and returns JSON responses.

"""
Activity and Notification Routes

- Event activity logs: every role, event must belong to the caller's org
- Organization-wide activity logs: admin only
- Notifications: any authenticated user, own notices only
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..errors import ServiceError
from ..permissions import READ_ROLES, ADMIN_ROLES
from ..services import activity_service, notification_service
from ..services.tenant_service import require_event_in_org


activity_bp = Blueprint("activity", __name__, url_prefix="/api/v1")

MAX_PAGE_SIZE = 200


def _page_args() -> tuple[int, int]:
    limit = request.args.get("limit", activity_service.DEFAULT_PAGE_SIZE, type=int)
    offset = request.args.get("offset", 0, type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > MAX_PAGE_SIZE:
        limit = MAX_PAGE_SIZE
    if offset < 0:
        offset = 0
    return limit, offset


def _logs_response(page: dict):
    return jsonify({
        "logs": [log.to_dict() for log in page["logs"]],
        "total": page["total"],
        "limit": page["limit"],
        "offset": page["offset"],
    })


@activity_bp.get("/events/<int:event_id>/activity-logs")
@require_auth
@require_roles(*READ_ROLES)
def event_activity_logs_route(event_id: int):
    limit, offset = _page_args()
    try:
        require_event_in_org(event_id, g.principal.org_id)
        page = activity_service.get_activity_logs(event_id, limit=limit, offset=offset)
        return _logs_response(page), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list activity logs")
        return jsonify({"error": "Internal server error"}), 500


@activity_bp.get("/activity-logs")
@require_auth
@require_roles(*ADMIN_ROLES)
def all_activity_logs_route():
    limit, offset = _page_args()
    try:
        page = activity_service.get_all_activity_logs(g.principal.org_id, limit=limit, offset=offset)
        return _logs_response(page), 200
    except Exception:
        current_app.logger.exception("Failed to list organization activity logs")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# NOTIFICATIONS
# =============================================================================

@activity_bp.get("/notifications")
@require_auth
def list_notifications_route():
    """
    The caller's notifications, newest first.

    Query parameters:
    - is_read: true | false (omit for all)
    - limit, offset
    """
    limit, offset = _page_args()
    is_read_arg = request.args.get("is_read")
    is_read = None if is_read_arg is None else is_read_arg.lower() == "true"

    try:
        page = notification_service.list_notifications(
            g.principal.user_id, is_read=is_read, limit=limit, offset=offset
        )
        return jsonify({
            "notifications": [n.to_dict() for n in page["notifications"]],
            "total": page["total"],
            "limit": page["limit"],
            "offset": page["offset"],
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list notifications")
        return jsonify({"error": "Internal server error"}), 500


@activity_bp.get("/notifications/unread")
@require_auth
def unread_notifications_route():
    try:
        page = notification_service.list_notifications(g.principal.user_id, is_read=False)
        return jsonify({
            "notifications": [n.to_dict() for n in page["notifications"]],
            "count": notification_service.unread_count(g.principal.user_id),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list unread notifications")
        return jsonify({"error": "Internal server error"}), 500


@activity_bp.put("/notifications/<int:notification_id>/read")
@require_auth
def mark_notification_read_route(notification_id: int):
    try:
        notification = notification_service.mark_as_read(notification_id, g.principal.user_id)
        return jsonify(notification.to_dict()), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark notification read")
        return jsonify({"error": "Internal server error"}), 500


@activity_bp.put("/notifications/read-all")
@require_auth
def mark_all_notifications_read_route():
    try:
        count = notification_service.mark_all_as_read(g.principal.user_id)
        return jsonify({"updated": count}), 200
    except Exception:
        current_app.logger.exception("Failed to mark notifications read")
        return jsonify({"error": "Internal server error"}), 500
