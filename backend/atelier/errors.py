# Overview: Typed domain errors shared by services and routes.

"""
Domain error taxonomy.

Every error the workflow raises on purpose is one of these types, so routes
and tests branch on the class rather than parsing messages. Routes map them
to HTTP status codes (see routes/_responses.py):

    ValidationError      -> 422 (with field-level details)
    NotFoundError        -> 404
    ForbiddenError       -> 403
    NoOpTransitionError  -> 400 (stale client view, not a server fault)
    ConflictError        -> 409
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for business-rule failures surfaced to API callers."""


class ValidationError(DomainError, ValueError):
    """Malformed input: unknown status value, missing required field, bad range."""

    def __init__(self, message: str, details: dict[str, str] | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(DomainError):
    """Referenced order, task, measurement or notification does not exist."""


class ForbiddenError(DomainError):
    """Authenticated, but not allowed to perform this specific mutation."""


class NoOpTransitionError(DomainError):
    """Requested status equals the current status."""


class ConflictError(DomainError, ValueError):
    """Structural rule violation (e.g., deleting a DELIVERED order)."""
