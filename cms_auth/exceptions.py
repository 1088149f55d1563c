"""Application error taxonomy.

Services raise these; the HTTP layer maps each one to a status code and the
response envelope (see ``cms_auth.main``).
"""

from typing import List, Optional


class AppError(Exception):
    """Base class for errors that are safe to report to the caller."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationError(AppError):
    """Malformed or missing input."""

    status_code = 400


class UnauthorizedError(AppError):
    """Bad credentials, invalid token, or inactive account."""

    status_code = 401


class ForbiddenError(AppError):
    """Authenticated but lacking the required permission or role."""

    status_code = 403


class NotFoundError(AppError):
    """Referenced user, group or permission does not exist."""

    status_code = 404


class ConflictError(AppError):
    """Unique constraint violation (duplicate e-mail, duplicate role name)."""

    status_code = 409
