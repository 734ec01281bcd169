"""Checkout/checkin of the server-held workout session lock.

The lock gives one device exclusive write access to a workout while sets are
being logged. It lives entirely on the server: this module keeps no "I hold
the lock" flag, so every logging session must check out again.
"""
import logging

from ..api.client import CoachApiClient
from ..errors import CoachClientError, ConflictError, LockHeldElsewhere, ServerError

logger = logging.getLogger(__name__)


class SessionLock:
    """Soft-lock protocol for one client."""

    def __init__(self, client: CoachApiClient):
        self.client = client

    async def checkout(self, workout_id: int) -> None:
        """
        Request the lock for ``workout_id``.

        Raises:
            LockHeldElsewhere: the server refused the checkout; its message is
                kept when it sent one
            NetworkError, AuthError: propagated unchanged
        """
        try:
            await self.client.workout_action(
                workout_id, "checkout", failure_message=LockHeldElsewhere.default_message
            )
        except (ConflictError, ServerError) as e:
            logger.info(f"Checkout of workout {workout_id} refused: {e.message}")
            raise LockHeldElsewhere(e.message) from e
        logger.info(f"Checked out workout {workout_id}")

    async def checkin(self, workout_id: int) -> bool:
        """
        Release the lock. Best-effort: failures are logged, never raised.

        Returns True when the server acknowledged the checkin.
        """
        try:
            await self.client.workout_action(workout_id, "checkin", failure_message="Checkin failed")
        except CoachClientError as e:
            logger.warning(f"checkin of workout {workout_id} failed: {e.message}")
            return False
        logger.info(f"Checked in workout {workout_id}")
        return True
