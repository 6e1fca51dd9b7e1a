# Overview: Shared JSON error responses for API routes.

from flask import jsonify, request

from ..errors import (
    ConflictError,
    DomainError,
    ForbiddenError,
    NoOpTransitionError,
    NotFoundError,
    ValidationError,
)


_STATUS_BY_ERROR = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (NoOpTransitionError, 400),
    (ConflictError, 409),
)


def domain_error_response(exc: DomainError):
    """Map a domain error to (json, status). ValidationError carries field details."""
    for error_cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            body = {"error": str(exc)}
            if isinstance(exc, ValidationError) and exc.details:
                body["details"] = exc.details
            return jsonify(body), status
    return jsonify({"error": str(exc)}), 400


def stale_write_response():
    """Optimistic-lock loss: another request changed the row first."""
    return jsonify({"error": "Order was modified by another request. Reload and try again."}), 409


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data
