# Overview: Domain error taxonomy shared by services and routes.

"""
Every rejection the engine produces is one of the classes below. Each
carries a stable ``kind`` (returned to clients as ``error``), a
human-readable message and optional ``details``.

    ValidationError     400  malformed, negative or missing input
    AuthorizationError  403  role/ownership does not permit the operation
    NotFoundError       404  quote, line item, material, order absent
    StateConflictError  409  transition unreachable, margin floor violated
    RateLimitedError    429  too many attempts for (identifier, action)
    DependencyError     502  a best-effort collaborator step failed

Routes never build these responses by hand; they call ``error_response``.
"""

from __future__ import annotations

from flask import jsonify


class QuoteEngineError(Exception):
    """Base class for every typed rejection."""

    kind = "error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(QuoteEngineError, ValueError):
    """400-level input problem."""

    kind = "validation_error"
    http_status = 400


class AuthorizationError(QuoteEngineError):
    """The acting role may not perform this transition or mutation."""

    kind = "authorization_error"
    http_status = 403


class NotFoundError(QuoteEngineError):
    kind = "not_found"
    http_status = 404


class StateConflictError(QuoteEngineError):
    """409-level business rule conflict (bad transition, margin floor)."""

    kind = "state_conflict"
    http_status = 409


class RateLimitedError(QuoteEngineError):
    kind = "rate_limited"
    http_status = 429

    def __init__(self, message: str, retry_after_seconds: int):
        super().__init__(message, details={"retry_after_seconds": retry_after_seconds})
        self.retry_after_seconds = retry_after_seconds


class DependencyError(QuoteEngineError):
    """
    A follow-up step (aggregate recompute, fork side effect) failed after
    the primary write was committed. The primary write is NOT rolled back.
    """

    kind = "dependency_error"
    http_status = 502


def error_response(exc: QuoteEngineError):
    """Map a typed rejection to a Flask (response, status) pair."""
    response = jsonify(exc.to_dict())
    if isinstance(exc, RateLimitedError):
        response.headers["Retry-After"] = str(exc.retry_after_seconds)
    return response, exc.http_status
