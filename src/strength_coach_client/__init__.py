"""Client-side workout session controller for the strength coach API."""
from .api.client import CoachApiClient
from .auth import CredentialStore
from .errors import (
    AuthError,
    CoachClientError,
    ConflictError,
    LockHeldElsewhere,
    NetworkError,
    PermissionDeniedError,
    ServerError,
    ValidationError,
)
from .services.workout_session import WorkoutSession

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "CoachApiClient",
    "CoachClientError",
    "ConflictError",
    "CredentialStore",
    "LockHeldElsewhere",
    "NetworkError",
    "PermissionDeniedError",
    "ServerError",
    "ValidationError",
    "WorkoutSession",
]
