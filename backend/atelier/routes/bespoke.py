# Overview: Flask API routes for bespoke orders; parses input and returns JSON responses.

"""Bespoke order API routes (back office)"""

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.orm.exc import StaleDataError

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..services import bespoke_service, production_service
from ..services.access_service import ADMIN_ROLES, STAFF_ROLES
from ._responses import domain_error_response, json_body, stale_write_response


bespoke_bp = Blueprint("bespoke", __name__, url_prefix="/api/bespoke")


@bespoke_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_orders_route():
    """
    List bespoke orders.

    Query: status (or ALL), search, page, limit (max 50)
    """
    try:
        result = bespoke_service.list_orders(
            status=request.args.get("status"),
            search=request.args.get("search"),
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", bespoke_service.DEFAULT_PAGE_SIZE, type=int),
        )
        return jsonify(result), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list bespoke orders")
        return jsonify({"error": "Internal server error"}), 500


@bespoke_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_order_route():
    try:
        order = bespoke_service.create_order(json_body(), g.current_user)
        return jsonify({"order": order.to_dict()}), 201
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create bespoke order")
        return jsonify({"error": "Internal server error"}), 500


@bespoke_bp.get("/<int:order_id>")
@require_auth
@require_role(*STAFF_ROLES)
def get_order_route(order_id: int):
    try:
        order = bespoke_service.get_order(order_id)
        return jsonify({"order": bespoke_service.order_detail(order)}), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load bespoke order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@bespoke_bp.patch("/<int:order_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_order_route(order_id: int):
    """Edit non-status fields. Status changes go through /status."""
    try:
        order = bespoke_service.update_order(order_id, json_body(), g.current_user)
        return jsonify({"order": order.to_dict()}), 200
    except DomainError as e:
        return domain_error_response(e)
    except StaleDataError:
        return stale_write_response()
    except Exception:
        current_app.logger.exception("Failed to update bespoke order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@bespoke_bp.delete("/<int:order_id>")
@require_auth
@require_role(*ADMIN_ROLES)
def delete_order_route(order_id: int):
    """Delete an order with its tasks and history. Delivered orders are kept."""
    try:
        bespoke_service.delete_order(order_id, g.current_user)
        return jsonify({"success": True}), 200
    except DomainError as e:
        return domain_error_response(e)
    except StaleDataError:
        return stale_write_response()
    except Exception:
        current_app.logger.exception("Failed to delete bespoke order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@bespoke_bp.patch("/<int:order_id>/status")
@require_auth
@require_role(*STAFF_ROLES)
def transition_status_route(order_id: int):
    """
    Move an order to a new status.

    Body: {"status": "<BespokeStatus>", "note": "optional"}

    Returns 400 when the order already has that status.
    """
    try:
        data = json_body()
        order = bespoke_service.transition_status(
            order_id,
            data.get("status"),
            g.current_user,
            note=data.get("note"),
        )
        return jsonify({"order": order.to_dict()}), 200
    except DomainError as e:
        return domain_error_response(e)
    except StaleDataError:
        return stale_write_response()
    except Exception:
        current_app.logger.exception("Failed to change status of bespoke order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@bespoke_bp.get("/<int:order_id>/tasks")
@require_auth
@require_role(*STAFF_ROLES)
def list_order_tasks_route(order_id: int):
    try:
        tasks = production_service.list_order_tasks(order_id)
        return jsonify({"tasks": [t.to_dict() for t in tasks]}), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list tasks for bespoke order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@bespoke_bp.post("/<int:order_id>/tasks")
@require_auth
@require_role(*STAFF_ROLES)
def create_task_route(order_id: int):
    try:
        task = production_service.create_task(order_id, json_body(), g.current_user)
        return jsonify({"task": task.to_dict()}), 201
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create task for bespoke order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500
