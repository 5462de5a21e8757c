import asyncio

import pytest
from pydantic import ValidationError

from golf.logic.timer import DeadlineTimer, TimerConfig
from golf.server.settings import GolfServerSettings


class TestDeadlineTimer:
    async def test_callback_fires_after_deadline(self):
        timer = DeadlineTimer()
        fired = asyncio.Event()

        async def on_timeout():
            fired.set()

        timer.start(0.01, on_timeout)
        await asyncio.wait_for(fired.wait(), timeout=1.0)

        assert fired.is_set()

    async def test_cancel_prevents_callback(self):
        timer = DeadlineTimer()
        called = False

        async def on_timeout():
            nonlocal called
            called = True

        timer.start(0.02, on_timeout)
        timer.cancel()
        await asyncio.sleep(0.05)

        assert called is False
        assert timer.active is False

    async def test_cancel_is_safe_when_idle_or_fired(self):
        timer = DeadlineTimer()
        timer.cancel()

        async def on_timeout():
            pass

        timer.start(0.001, on_timeout)
        await asyncio.sleep(0.02)
        timer.cancel()
        timer.cancel()

        assert timer.active is False

    async def test_starting_again_replaces_pending_deadline(self):
        timer = DeadlineTimer()
        calls: list[str] = []

        async def first():
            calls.append("first")

        async def second():
            calls.append("second")

        timer.start(0.01, first)
        timer.start(0.01, second)
        await asyncio.sleep(0.05)

        assert calls == ["second"]

    async def test_callback_can_cancel_its_own_timer(self):
        """Ending a match from a deadline cancels every timer, including the running one."""
        timer = DeadlineTimer()
        finished = asyncio.Event()

        async def on_timeout():
            timer.cancel()
            await asyncio.sleep(0)
            finished.set()

        timer.start(0.001, on_timeout)
        await asyncio.wait_for(finished.wait(), timeout=1.0)

        assert finished.is_set()

    async def test_callback_exception_is_logged_not_raised(self):
        timer = DeadlineTimer()

        async def failing():
            raise RuntimeError("callback failed")

        timer.start(0.001, failing)
        task = timer._active_task
        await asyncio.sleep(0.02)

        assert task is not None
        assert task.done()
        assert task.exception() is None


class TestTimerConfig:
    def test_defaults(self):
        config = TimerConfig()

        assert config.ready_timeout_seconds == 5
        assert config.start_ack_timeout_seconds == 5
        assert config.play_timeout_seconds == 30

    def test_non_positive_rejected(self):
        with pytest.raises(ValidationError, match="play_timeout_seconds"):
            TimerConfig(play_timeout_seconds=0)

    def test_from_settings(self):
        settings = GolfServerSettings(ready_timeout_seconds=1, start_ack_timeout_seconds=2, play_timeout_seconds=3)
        config = TimerConfig.from_settings(settings)

        assert (config.ready_timeout_seconds, config.start_ack_timeout_seconds, config.play_timeout_seconds) == (
            1,
            2,
            3,
        )
