# Overview: Flask API routes for a user's own in-app notifications.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import DomainError
from ..services import notification_service
from ._responses import domain_error_response


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    try:
        page = request.args.get("page", 1, type=int)
        return jsonify(notification_service.list_notifications(g.current_user.id, page)), 200
    except Exception:
        current_app.logger.exception("Failed to list notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.get("/unread-count")
@require_auth
def unread_count_route():
    try:
        return jsonify({"count": notification_service.unread_count(g.current_user.id)}), 200
    except Exception:
        current_app.logger.exception("Failed to count unread notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.patch("")
@require_auth
def mark_all_read_route():
    try:
        updated = notification_service.mark_all_read(g.current_user.id)
        return jsonify({"updated": updated}), 200
    except Exception:
        current_app.logger.exception("Failed to mark notifications read")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.patch("/<int:notification_id>")
@require_auth
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(notification_id, g.current_user.id)
        return jsonify({"notification": notification.to_dict()}), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to mark notification %s read", notification_id)
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.delete("/<int:notification_id>")
@require_auth
def delete_notification_route(notification_id: int):
    try:
        notification_service.delete_notification(notification_id, g.current_user.id)
        return jsonify({"success": True}), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete notification %s", notification_id)
        return jsonify({"error": "Internal server error"}), 500
