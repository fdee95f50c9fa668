"""
core/errors.py -- Application error taxonomy.

Stores and route handlers raise these; api/main.py renders every AppError as
the same JSON envelope ({"message", "code", "errors"?}) with the status code
carried by the exception class. Route code never builds error responses by
hand.

Messages are user-facing and in Spanish, matching the rest of the API.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, errors: Optional[list[dict]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(AppError):
    """Invalid input (field-level messages go in errors)."""

    status_code = 400
    code = "validation_error"


class CapacityExceededError(AppError):
    """The villa already holds cupo_maximo personas."""

    status_code = 400
    code = "capacity_exceeded"


class AuthenticationError(AppError):
    """Bad credentials or missing token."""

    status_code = 401
    code = "unauthorized"


class TokenExpiredError(AuthenticationError):
    code = "token_expired"


class TokenInvalidError(AuthenticationError):
    code = "token_invalid"


class AuthorizationError(AppError):
    """Role or ownership mismatch."""

    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    """Uniqueness violation, already-inactive user, or referenced row."""

    status_code = 409
    code = "conflict"


class RateLimitedError(AppError):
    status_code = 429
    code = "rate_limited"
