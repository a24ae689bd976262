"""
Domain Exceptions

Services raise these instead of HTTPException so they stay usable outside a
request (scripts, Celery tasks). The API layer maps them to status codes.
"""


class AppError(Exception):
    """Base class for errors that carry an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(AppError):
    """Malformed or missing input."""
    status_code = 400


class NotFound(AppError):
    """Referenced entity does not exist."""
    status_code = 404


class Conflict(AppError):
    """Request clashes with current state (duplicate, illegal transition)."""
    status_code = 409
