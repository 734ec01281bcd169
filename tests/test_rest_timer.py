"""Unit tests for the deadline-anchored rest timer."""
import asyncio

import pytest

from strength_coach_client.services.rest_timer import (
    TIMER_OPTIONS,
    RestTimer,
    format_rest_time,
)


class FakeClock:
    """Wall clock the test advances by hand."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer(clock) -> RestTimer:
    return RestTimer(clock=clock)


class TestRestTimer:

    def test_start_sets_deadline(self, timer, clock):
        timer.start(90)

        assert timer.running is True
        assert timer.state.target_end_timestamp == clock.now + 90
        assert timer.remaining_seconds == 90

    def test_tick_rounds_up(self, timer, clock):
        timer.start(90)
        clock.advance(10.2)

        assert timer.tick() == 80
        assert timer.running is True

    @pytest.mark.parametrize("suspended", [0, 1, 45, 89, 90, 91, 600])
    def test_suspend_then_single_tick(self, timer, clock, suspended):
        """Only the clock moves while suspended; one tick catches up."""
        timer.start(90)
        clock.advance(suspended)

        remaining = timer.tick()

        assert abs(remaining - max(0, 90 - suspended)) <= 1
        assert timer.running is (remaining > 0)

    def test_reaching_zero_stops(self, timer, clock):
        timer.start(30)
        clock.advance(30)

        assert timer.tick() == 0
        assert timer.running is False
        assert timer.state.target_end_timestamp is None

    def test_stop_clears_state(self, timer, clock):
        timer.start(60)
        timer.stop()

        assert timer.running is False
        assert timer.remaining_seconds == 0
        assert timer.state.target_end_timestamp is None
        clock.advance(5)
        assert timer.tick() == 0

    def test_restart_replaces_deadline(self, timer, clock):
        timer.start(300)
        clock.advance(100)
        timer.start(60)

        clock.advance(30)
        assert timer.tick() == 30

    def test_on_foreground_recomputes(self, timer, clock):
        timer.start(120)
        clock.advance(50)
        assert timer.on_foreground() == 70

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration_rejected(self, timer, duration):
        with pytest.raises(ValueError):
            timer.start(duration)
        assert timer.running is False

    def test_on_update_called(self, clock):
        updates = []
        timer = RestTimer(clock=clock, on_update=updates.append)

        timer.start(60)
        clock.advance(60)
        timer.tick()

        assert [u.running for u in updates] == [True, False]

    @pytest.mark.asyncio
    async def test_run_until_finished(self, timer, clock):
        timer.start(2)

        async def advance_clock():
            while timer.running:
                clock.advance(1)
                await asyncio.sleep(0)

        await asyncio.gather(timer.run(interval=0.001), advance_clock())
        assert timer.running is False

    @pytest.mark.asyncio
    async def test_pause_ticking_keeps_deadline(self, timer, clock):
        timer.start(120)
        task = timer.ensure_ticking(interval=0.01)
        assert timer.ensure_ticking(interval=0.01) is task

        timer.pause_ticking()
        await asyncio.sleep(0)
        assert task.cancelled() or task.done()

        clock.advance(100)
        assert timer.on_foreground() == 20
        timer.pause_ticking()

    @pytest.mark.asyncio
    async def test_foreground_resumes_periodic_tick(self, timer, clock):
        timer.start(90)
        timer.ensure_ticking(interval=0.01)
        timer.pause_ticking()

        clock.advance(10)
        assert timer.on_foreground() == 80

        clock.advance(100)
        await asyncio.sleep(0.1)

        assert timer.running is False
        assert timer.remaining_seconds == 0

    def test_foreground_without_loop_only_resyncs(self, timer, clock):
        timer.start(60)
        clock.advance(15)

        assert timer.on_foreground() == 45
        assert timer.resume_ticking() is None

    def test_fractional_duration_rounds_up(self, timer):
        timer.start(29.5)
        assert timer.remaining_seconds == 30
        assert timer.tick() == 30


class TestFormatRestTime:

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0:00"), (5, "0:05"), (90, "1:30"), (300, "5:00"), (-3, "0:00")],
    )
    def test_format(self, seconds, expected):
        assert format_rest_time(seconds) == expected

    def test_options(self):
        assert TIMER_OPTIONS == (30, 60, 90, 120, 180, 240, 300)
