# Overview: Flask API routes for production tasks; parses input and returns JSON responses.

"""Production board API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..services import production_service
from ..services.access_service import ADMIN_ROLES, STAFF_ROLES
from ._responses import domain_error_response, json_body


production_bp = Blueprint("production", __name__, url_prefix="/api/production")

_STATUS_BODY_KEYS = {"status", "actual_hours", "notes"}


@production_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_tasks_route():
    """
    Cross-order production board.

    Query: status, stage (or ALL), assignee (user id), mine=true, search, page, limit
    """
    try:
        assignee = request.args.get("assignee", type=int)
        if request.args.get("mine", "").lower() in ("1", "true", "yes"):
            assignee = g.current_user.id

        result = production_service.list_tasks(
            status=request.args.get("status"),
            stage=request.args.get("stage"),
            assignee=assignee,
            search=request.args.get("search"),
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", production_service.DEFAULT_PAGE_SIZE, type=int),
        )
        return jsonify(result), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list production tasks")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.patch("/<int:task_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_task_route(task_id: int):
    """
    Update a task's status.

    Body: {"status": ..., "actual_hours"?: n, "notes"?: str, ...admin-only fields}
    STAFF may only update tasks assigned to them.
    """
    try:
        data = json_body()
        changes = {k: v for k, v in data.items() if k not in _STATUS_BODY_KEYS}
        task = production_service.update_task_status(
            task_id,
            data.get("status"),
            g.current_user,
            actual_hours=data.get("actual_hours"),
            notes=data.get("notes"),
            changes=changes,
        )
        return jsonify({"task": task.to_dict(include_order=True)}), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update production task %s", task_id)
        return jsonify({"error": "Internal server error"}), 500


@production_bp.delete("/<int:task_id>")
@require_auth
@require_role(*ADMIN_ROLES)
def delete_task_route(task_id: int):
    try:
        production_service.delete_task(task_id, g.current_user)
        return jsonify({"success": True}), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete production task %s", task_id)
        return jsonify({"error": "Internal server error"}), 500
