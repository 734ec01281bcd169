"""HTTP access to the coach API."""
from .client import ApiResponse, CoachApiClient
from .retry import is_retryable_error, retry_read

__all__ = [
    "ApiResponse",
    "CoachApiClient",
    "is_retryable_error",
    "retry_read",
]
