"""
Workout session controller.

Owns everything a workout screen needs besides layout: the current server
snapshot, per-item form input, which items have a mutation in flight, the
rest timer and the user-visible error. Framework-independent: a UI binds to
the attributes here and calls the async actions.

Rules this controller keeps:
- The snapshot is replaced wholesale after every successful mutation
  (full refetch); it is never patched locally.
- At most one mutation per item is in flight; other items are independent.
- Mutations are shielded from task cancellation. After :meth:`detach` their
  results are dropped instead of touching the snapshot.
- Errors never escape: they become a dismissible :class:`UserMessage`.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from ..api.client import CoachApiClient
from ..config import WeightUnit, settings
from ..errors import AuthError, CoachClientError, ValidationError
from ..models import Permissions, Workout, WorkoutItem, WorkoutPayload, WorkoutStatus
from .rest_timer import RestTimer
from .set_reconciler import (
    LogKind,
    can_submit,
    can_undo,
    log_kind,
    submission_block_reason,
    validate_input,
)
from .workout_lifecycle import WorkoutAction, WorkoutLifecycle, available_actions

logger = logging.getLogger(__name__)

FORM_FIELDS = ("weight", "rpe", "reps", "rir")

ACTION_TITLES: Dict[WorkoutAction, str] = {
    WorkoutAction.BEGIN: "Unable to begin workout",
    WorkoutAction.COMPLETE: "Error",
    WorkoutAction.CANCEL: "Error",
    WorkoutAction.RESUME: "Unable to resume workout",
}


@dataclass(frozen=True)
class UserMessage:
    """A dismissible message for the user."""
    text: str
    title: str = "Error"


class FormStateMap:
    """Typed-but-unsent input per item id."""

    def __init__(self):
        self._forms: Dict[int, Dict[str, str]] = {}

    def get(self, item_id: int) -> Dict[str, str]:
        form = self._forms.get(item_id, {})
        return {f: form.get(f, "") for f in FORM_FIELDS}

    def update(self, item_id: int, field: str, value: str) -> None:
        if field not in FORM_FIELDS:
            raise KeyError(f"Unknown form field: {field}")
        self._forms.setdefault(item_id, {})[field] = value

    def clear(self, item_id: int) -> None:
        self._forms.pop(item_id, None)


class WorkoutSession:
    """Controller for one workout screen."""

    def __init__(
        self,
        client: CoachApiClient,
        workout_id: int,
        unit: Optional[WeightUnit] = None,
        lifecycle: Optional[WorkoutLifecycle] = None,
        rest_timer: Optional[RestTimer] = None,
        on_change: Optional[Callable[["WorkoutSession"], None]] = None,
    ):
        self.client = client
        self.workout_id = workout_id
        self.unit: WeightUnit = unit or settings.DEFAULT_UNIT
        self.lifecycle = lifecycle or WorkoutLifecycle(client)
        self.rest_timer = rest_timer or RestTimer()
        if self.rest_timer.on_update is None:
            # Re-render on every countdown tick
            self.rest_timer.on_update = lambda state: self._changed()
        self.on_change = on_change

        self.snapshot: Optional[WorkoutPayload] = None
        self.loading = False
        self.error: Optional[UserMessage] = None
        self.needs_login = False
        self.forms = FormStateMap()
        self.saving_item_ids: Set[int] = set()
        self.action_in_flight: Optional[WorkoutAction] = None
        self.rest_prompt_pending = False
        self._detached = False

    # ------------------------------------------------------------------
    # Derived view state
    # ------------------------------------------------------------------

    @property
    def workout(self) -> Optional[Workout]:
        return self.snapshot.workout if self.snapshot else None

    @property
    def permissions(self) -> Permissions:
        return self.snapshot.permissions if self.snapshot else Permissions()

    @property
    def status(self) -> Optional[str]:
        return self.workout.status if self.workout else None

    @property
    def can_log(self) -> bool:
        return self.permissions.can_log and self.status == WorkoutStatus.IN_PROGRESS.value

    def available_actions(self) -> List[WorkoutAction]:
        return available_actions(self.status, self.permissions)

    def item(self, item_id: int) -> Optional[WorkoutItem]:
        return self.workout.find_item(item_id) if self.workout else None

    def can_submit(self, item_id: int) -> bool:
        item = self.item(item_id)
        if item is None or self.workout is None:
            return False
        return can_submit(item, self.status, self.permissions, self.workout)

    def is_saving(self, item_id: int) -> bool:
        return item_id in self.saving_item_ids

    # ------------------------------------------------------------------
    # Local UI state
    # ------------------------------------------------------------------

    def set_unit(self, unit: WeightUnit) -> None:
        self.unit = unit
        self._changed()

    def update_input(self, item_id: int, field: str, value: str) -> None:
        self.forms.update(item_id, field, value)
        self._changed()

    def dismiss_error(self) -> None:
        self.error = None
        self._changed()

    def choose_rest(self, seconds: int) -> None:
        """Start the rest timer from the post-set prompt."""
        self.rest_prompt_pending = False
        self.rest_timer.start(seconds)
        self.rest_timer.resume_ticking()
        self._changed()

    def dismiss_rest_prompt(self) -> None:
        self.rest_prompt_pending = False
        self._changed()

    def detach(self) -> None:
        """The screen went away; in-flight calls finish but their results are dropped."""
        self._detached = True
        self.rest_timer.pause_ticking()

    def _changed(self) -> None:
        if self.on_change and not self._detached:
            self.on_change(self)

    def _report(self, error: CoachClientError, title: str = "Error") -> None:
        if isinstance(error, AuthError):
            self.needs_login = True
        self.error = UserMessage(text=error.message, title=title)
        logger.info(f"Workout {self.workout_id}: {title}: {error.message}")
        self._changed()

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Refetch the whole workout and replace the snapshot."""
        self.loading = True
        self._changed()
        try:
            payload = await self.client.get_workout(self.workout_id)
        except CoachClientError as e:
            if not self._detached:
                self._report(e)
            return False
        finally:
            self.loading = False

        if self._detached:
            logger.debug(f"Workout {self.workout_id} fetched after detach; discarding")
            return False
        self.snapshot = payload
        self._changed()
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def begin(self) -> bool:
        return await self._transition(WorkoutAction.BEGIN)

    async def complete(self) -> bool:
        return await self._transition(WorkoutAction.COMPLETE)

    async def cancel(self, confirmed: bool) -> bool:
        return await self._transition(WorkoutAction.CANCEL, confirmed=confirmed)

    async def resume(self) -> bool:
        return await self._transition(WorkoutAction.RESUME)

    async def _transition(self, action: WorkoutAction, confirmed: bool = False) -> bool:
        if self.action_in_flight is not None:
            logger.debug(f"{action.value} ignored: {self.action_in_flight.value} in flight")
            return False
        if self.workout is None:
            self._report(ValidationError("Workout not loaded"))
            return False

        self.action_in_flight = action
        self.error = None
        self._changed()

        async def _run() -> None:
            await self.lifecycle.perform(
                action, self.workout_id, self.status, self.permissions, confirmed=confirmed
            )

        def _done() -> None:
            self.action_in_flight = None

        return await self._shielded(_run, ACTION_TITLES[action], _done)

    # ------------------------------------------------------------------
    # Per-item mutations
    # ------------------------------------------------------------------

    async def log_set(self, item_id: int) -> bool:
        """Validate the item's form input and log the next set (or top set)."""
        item = self.item(item_id)
        workout = self.workout
        if item is None or workout is None:
            self._report(ValidationError("Item not found in this workout"))
            return False
        if self.is_saving(item_id):
            return False

        reason = submission_block_reason(item, workout, self.permissions)
        if reason:
            self._report(ValidationError(reason))
            return False

        kind = log_kind(item, workout)
        try:
            entry = validate_input(self.forms.get(item_id), self.unit, kind)
        except ValidationError as e:
            self._report(e)
            return False

        senders = {
            LogKind.STRAIGHT: self.client.log_straight,
            LogKind.TOP: self.client.log_top,
            LogKind.BK: self.client.log_bk,
            LogKind.ACC: self.client.log_acc,
        }
        send = senders[kind]

        async def _run() -> None:
            await send(self.workout_id, item_id, entry)
            if not self._detached:
                self.rest_prompt_pending = True
                self.forms.clear(item_id)

        return await self._item_mutation(item_id, _run)

    async def undo_last(self, item_id: int) -> bool:
        """Delete the highest-index set log of the item."""
        item = self.item(item_id)
        if item is None:
            self._report(ValidationError("Item not found in this workout"))
            return False
        if not self.can_log:
            self._report(ValidationError("Begin workout to log sets"))
            return False
        if not can_undo(item):
            self._report(ValidationError("No sets to undo"))
            return False

        async def _run() -> None:
            await self.client.delete_last_set(self.workout_id, item_id)

        return await self._item_mutation(item_id, _run)

    async def clear_top(self, item_id: int) -> bool:
        """Remove a TOP item's recorded top set."""
        item = self.item(item_id)
        if item is None or not item.is_top:
            self._report(ValidationError("Not a top set item"))
            return False
        if not self.can_log:
            self._report(ValidationError("Begin workout to log sets"))
            return False
        if not item.has_top_actual:
            self._report(ValidationError("Top set is not logged"))
            return False

        async def _run() -> None:
            await self.client.clear_top(self.workout_id, item_id)

        return await self._item_mutation(item_id, _run)

    async def swap_accessory(self, item_id: int, movement: str) -> bool:
        """Replace an accessory's movement."""
        workout = self.workout
        if workout is None or not workout.is_accessory(item_id):
            self._report(ValidationError("Not an accessory item"))
            return False
        if not self.can_log:
            self._report(ValidationError("Begin workout to log sets"))
            return False
        movement = (movement or "").strip()
        if not movement:
            self._report(ValidationError("Movement required", field="movement"))
            return False

        async def _run() -> None:
            await self.client.swap_acc(self.workout_id, item_id, movement)

        return await self._item_mutation(item_id, _run)

    # ------------------------------------------------------------------
    # Mutation plumbing
    # ------------------------------------------------------------------

    async def _item_mutation(self, item_id: int, run: Callable[[], Awaitable[Any]]) -> bool:
        if item_id in self.saving_item_ids:
            logger.debug(f"Item {item_id} already has a mutation in flight")
            return False
        self.saving_item_ids.add(item_id)
        self.error = None
        self._changed()

        def _done() -> None:
            self.saving_item_ids.discard(item_id)

        return await self._shielded(run, "Error", _done)

    async def _shielded(
        self,
        run: Callable[[], Awaitable[Any]],
        title: str,
        done: Callable[[], None],
    ) -> bool:
        """
        Run a mutation, then refetch. The work runs in its own task so
        cancelling the caller never aborts a request mid-flight.
        """

        async def _mutate_then_refresh() -> bool:
            try:
                try:
                    await run()
                except CoachClientError as e:
                    if not self._detached:
                        self._report(e, title)
                    return False
                await self.refresh()
                return True
            finally:
                done()
                self._changed()

        task = asyncio.ensure_future(_mutate_then_refresh())
        return await asyncio.shield(task)
