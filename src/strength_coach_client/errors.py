"""Error taxonomy for the coach API client.

Every error carries a ``message`` that is safe to show to the user verbatim.
``ValidationError`` never reaches the network layer; the rest describe a
request that was attempted.
"""
from typing import Optional


class CoachClientError(RuntimeError):
    """Base class for all client errors."""

    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NetworkError(CoachClientError):
    """Raised when a request could not complete (DNS, timeout, connection)."""

    default_message = "Network error"


class AuthError(CoachClientError):
    """Raised on 401 or an expired session; the caller must log in again."""

    default_message = "Session expired. Please log in again."


class ValidationError(CoachClientError):
    """Raised when user input is rejected before anything is sent."""

    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConflictError(CoachClientError):
    """Raised when the server rejects a state transition."""

    default_message = "Workout state changed on the server"


class LockHeldElsewhere(ConflictError):
    """Raised when another device currently holds the workout session lock."""

    default_message = "Workout is currently checked out by another user or device."


class ServerError(CoachClientError):
    """Raised on ``ok: false`` envelopes or non-2xx responses."""

    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PermissionDeniedError(ValidationError):
    """Raised client-side when the user lacks log permission for the workout."""

    default_message = "You do not have permission to log this workout on mobile."
