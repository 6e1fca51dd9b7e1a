# Overview: Flask API routes for customer measurements; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..services import measurement_service
from ..services.access_service import STAFF_ROLES
from ._responses import domain_error_response, json_body


measurements_bp = Blueprint("measurements", __name__, url_prefix="/api/customers/<int:customer_id>/measurements")


@measurements_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_measurements_route(customer_id: int):
    try:
        measurements = measurement_service.list_measurements(customer_id)
        return jsonify({"measurements": [m.to_dict() for m in measurements]}), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list measurements for customer %s", customer_id)
        return jsonify({"error": "Internal server error"}), 500


@measurements_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_measurement_route(customer_id: int):
    try:
        measurement = measurement_service.create_measurement(customer_id, json_body(), g.current_user)
        return jsonify({"measurement": measurement.to_dict()}), 201
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create measurement for customer %s", customer_id)
        return jsonify({"error": "Internal server error"}), 500


@measurements_bp.patch("/<int:measurement_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_measurement_route(customer_id: int, measurement_id: int):
    try:
        measurement = measurement_service.update_measurement(customer_id, measurement_id, json_body(), g.current_user)
        return jsonify({"measurement": measurement.to_dict()}), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update measurement %s", measurement_id)
        return jsonify({"error": "Internal server error"}), 500


@measurements_bp.delete("/<int:measurement_id>")
@require_auth
@require_role(*STAFF_ROLES)
def delete_measurement_route(customer_id: int, measurement_id: int):
    try:
        measurement_service.delete_measurement(customer_id, measurement_id, g.current_user)
        return jsonify({"success": True}), 200
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete measurement %s", measurement_id)
        return jsonify({"error": "Internal server error"}), 500
