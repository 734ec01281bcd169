"""Session-level services built on the API client."""
from .rest_timer import TIMER_OPTIONS, RestTimer, format_rest_time
from .session_lock import SessionLock
from .workout_lifecycle import WorkoutAction, WorkoutLifecycle
from .workout_session import UserMessage, WorkoutSession

__all__ = [
    "TIMER_OPTIONS",
    "RestTimer",
    "SessionLock",
    "UserMessage",
    "WorkoutAction",
    "WorkoutLifecycle",
    "WorkoutSession",
    "format_rest_time",
]
