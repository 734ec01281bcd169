"""
Workout lifecycle state machine.

    assigned --begin--> in_progress --complete--> completed
                         ^      |                    |
                 begin   |      | cancel             | resume
                         |      v                    |
                        cancelled    in_progress <---+

The server owns the status. Transitions here are requests: on failure nothing
changes locally, and on success the caller refetches to learn the new status.
"""
import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from ..api.client import CoachApiClient
from ..config import settings
from ..errors import ConflictError, PermissionDeniedError, ValidationError
from ..models import Permissions, WorkoutStatus
from .session_lock import SessionLock

logger = logging.getLogger(__name__)


class WorkoutAction(str, Enum):
    BEGIN = "begin"
    COMPLETE = "complete"
    CANCEL = "cancel"
    RESUME = "resume"


# action -> (allowed source statuses, resulting status)
TRANSITIONS: Dict[WorkoutAction, Tuple[FrozenSet[str], str]] = {
    WorkoutAction.BEGIN: (
        frozenset({WorkoutStatus.ASSIGNED.value, WorkoutStatus.CANCELLED.value}),
        WorkoutStatus.IN_PROGRESS.value,
    ),
    WorkoutAction.COMPLETE: (
        frozenset({WorkoutStatus.IN_PROGRESS.value}),
        WorkoutStatus.COMPLETED.value,
    ),
    WorkoutAction.CANCEL: (
        frozenset({WorkoutStatus.IN_PROGRESS.value}),
        WorkoutStatus.CANCELLED.value,
    ),
    WorkoutAction.RESUME: (
        frozenset({WorkoutStatus.COMPLETED.value}),
        WorkoutStatus.IN_PROGRESS.value,
    ),
}

# Resume reopens through the same endpoint as begin
ENDPOINTS: Dict[WorkoutAction, str] = {
    WorkoutAction.BEGIN: "begin",
    WorkoutAction.COMPLETE: "complete",
    WorkoutAction.CANCEL: "cancel",
    WorkoutAction.RESUME: "begin",
}

FAILURE_MESSAGES: Dict[WorkoutAction, str] = {
    WorkoutAction.BEGIN: "Failed to begin workout",
    WorkoutAction.COMPLETE: "Failed to complete workout",
    WorkoutAction.CANCEL: "Failed to cancel workout",
    WorkoutAction.RESUME: "Failed to resume workout",
}


def target_status(action: WorkoutAction) -> str:
    return TRANSITIONS[action][1]


def available_actions(status: Optional[str], permissions: Permissions) -> List[WorkoutAction]:
    """Actions the UI should offer for ``status``; none without log permission."""
    if not permissions.can_log:
        return []
    return [action for action, (sources, _) in TRANSITIONS.items() if status in sources]


def check_transition(
    action: WorkoutAction,
    status: Optional[str],
    permissions: Permissions,
    confirmed: bool = False,
) -> None:
    """
    Raise unless ``action`` may be requested from ``status``.

    Raises:
        PermissionDeniedError: caller lacks log permission
        ConflictError: the current status doesn't allow the action
        ValidationError: cancel requested without explicit confirmation
    """
    if not permissions.can_log:
        raise PermissionDeniedError()
    sources, _ = TRANSITIONS[action]
    if status not in sources:
        shown = (status or "unknown").replace("_", " ")
        raise ConflictError(f"Cannot {action.value} a workout that is {shown}")
    if action is WorkoutAction.CANCEL and not confirmed:
        raise ValidationError("Confirm to cancel this workout", field="confirm")


class WorkoutLifecycle:
    """Runs lifecycle transitions against the server."""

    def __init__(
        self,
        client: CoachApiClient,
        lock: Optional[SessionLock] = None,
        resume_reacquires_lock: Optional[bool] = None,
    ):
        self.client = client
        self.lock = lock or SessionLock(client)
        self.resume_reacquires_lock = (
            settings.RESUME_REACQUIRES_LOCK if resume_reacquires_lock is None else resume_reacquires_lock
        )
        if not self.resume_reacquires_lock:
            logger.warning("Resume will reopen workouts without checking out the session lock")

    async def perform(
        self,
        action: WorkoutAction,
        workout_id: int,
        status: Optional[str],
        permissions: Permissions,
        confirmed: bool = False,
    ) -> None:
        """
        Validate and send one transition.

        ``begin`` (and ``resume`` unless disabled) checks out the lock first; a
        refused checkout raises LockHeldElsewhere and the transition endpoint is
        never called. ``complete`` and ``cancel`` release the lock afterwards,
        best-effort.
        """
        check_transition(action, status, permissions, confirmed=confirmed)

        needs_lock = action is WorkoutAction.BEGIN or (
            action is WorkoutAction.RESUME and self.resume_reacquires_lock
        )
        if needs_lock:
            await self.lock.checkout(workout_id)

        try:
            await self.client.workout_action(
                workout_id, ENDPOINTS[action], failure_message=FAILURE_MESSAGES[action]
            )
        except Exception:
            if needs_lock:
                # Don't leave our own checkout dangling on a workout we never opened
                await self.lock.checkin(workout_id)
            raise

        logger.info(f"Workout {workout_id}: {action.value} -> {target_status(action)}")

        if action in (WorkoutAction.COMPLETE, WorkoutAction.CANCEL):
            await self.lock.checkin(workout_id)

    async def begin(self, workout_id: int, status: Optional[str], permissions: Permissions) -> None:
        await self.perform(WorkoutAction.BEGIN, workout_id, status, permissions)

    async def complete(self, workout_id: int, status: Optional[str], permissions: Permissions) -> None:
        await self.perform(WorkoutAction.COMPLETE, workout_id, status, permissions)

    async def cancel(
        self, workout_id: int, status: Optional[str], permissions: Permissions, confirmed: bool
    ) -> None:
        await self.perform(WorkoutAction.CANCEL, workout_id, status, permissions, confirmed=confirmed)

    async def resume(self, workout_id: int, status: Optional[str], permissions: Permissions) -> None:
        await self.perform(WorkoutAction.RESUME, workout_id, status, permissions)
