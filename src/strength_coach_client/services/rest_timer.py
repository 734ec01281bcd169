"""
Rest timer anchored to a wall-clock deadline.

Remaining time is always recomputed from the absolute target timestamp, never
by decrementing a counter, so a process that was suspended in the background
shows the right value after a single :meth:`RestTimer.tick` on resume.
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import settings

logger = logging.getLogger(__name__)

# Rest presets offered after a set is logged (seconds)
TIMER_OPTIONS = (30, 60, 90, 120, 180, 240, 300)


@dataclass
class RestTimerState:
    running: bool = False
    target_end_timestamp: Optional[float] = None
    remaining_seconds: int = 0


class RestTimer:
    """Single countdown; starting again replaces the previous deadline."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        on_update: Optional[Callable[[RestTimerState], None]] = None,
    ):
        self.clock = clock
        self.on_update = on_update
        self.state = RestTimerState()
        self._task: Optional[asyncio.Task] = None
        self._interval: Optional[float] = None

    @property
    def running(self) -> bool:
        return self.state.running

    @property
    def remaining_seconds(self) -> int:
        return self.state.remaining_seconds

    def start(self, duration_seconds: int) -> None:
        if duration_seconds <= 0:
            raise ValueError("Rest duration must be positive")
        self.state = RestTimerState(
            running=True,
            target_end_timestamp=self.clock() + duration_seconds,
            remaining_seconds=math.ceil(duration_seconds),
        )
        logger.debug(f"Rest timer started for {duration_seconds}s")
        self._notify()

    def stop(self) -> None:
        self.state = RestTimerState()
        self._notify()

    def tick(self) -> int:
        """Recompute remaining time against the clock; returns seconds left."""
        target = self.state.target_end_timestamp
        if not self.state.running or target is None:
            return self.state.remaining_seconds

        remaining = max(0, math.ceil(target - self.clock()))
        if remaining <= 0:
            self.state = RestTimerState()
            logger.debug("Rest timer finished")
        else:
            self.state = RestTimerState(
                running=True,
                target_end_timestamp=target,
                remaining_seconds=remaining,
            )
        self._notify()
        return remaining

    def on_foreground(self) -> int:
        """Host app regained focus: resync immediately, then resume ticking."""
        remaining = self.tick()
        self.resume_ticking()
        return remaining

    def _notify(self) -> None:
        if self.on_update:
            self.on_update(self.state)

    # ------------------------------------------------------------------
    # Periodic tick while foregrounded
    # ------------------------------------------------------------------

    async def run(self, interval: Optional[float] = None) -> None:
        """Tick every ``interval`` seconds until the countdown ends or is stopped."""
        interval = interval or settings.REST_TICK_SECONDS
        self.tick()
        while self.state.running:
            await asyncio.sleep(interval)
            self.tick()

    def ensure_ticking(self, interval: Optional[float] = None) -> asyncio.Task:
        """Start the periodic tick task on the running loop if not already active."""
        if interval is not None:
            self._interval = interval
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run(self._interval))
        return self._task

    def resume_ticking(self) -> Optional[asyncio.Task]:
        """Keep a running countdown ticking, when called from inside an event loop."""
        if not self.state.running:
            return None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; periodic tick not started")
            return None
        return self.ensure_ticking()

    def pause_ticking(self) -> None:
        """Host app went to the background. The deadline keeps running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


def format_rest_time(total_seconds: int) -> str:
    """Render seconds as ``m:ss``."""
    minutes, seconds = divmod(max(0, int(total_seconds)), 60)
    return f"{minutes}:{seconds:02d}"
