"""
Server-side deadlines for a match.

A match runs three kinds of deadline: the ready deadline armed when a
player joins, the start-ack deadline armed while the start-game message is
being delivered, and the play deadline armed once both players started.
Each is a single asyncio task that sleeps and then awaits its callback.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from golf.server.settings import GolfServerSettings


class TimerConfig(BaseModel):
    """Durations of the three match deadlines."""

    ready_timeout_seconds: float = Field(default=5, gt=0)
    start_ack_timeout_seconds: float = Field(default=5, gt=0)
    play_timeout_seconds: float = Field(default=30, gt=0)

    @classmethod
    def from_settings(cls, settings: GolfServerSettings) -> TimerConfig:
        """Build TimerConfig from server settings."""
        return cls(
            ready_timeout_seconds=settings.ready_timeout_seconds,
            start_ack_timeout_seconds=settings.start_ack_timeout_seconds,
            play_timeout_seconds=settings.play_timeout_seconds,
        )


class DeadlineTimer:
    """
    One cancellable deadline.

    Starting a new deadline replaces the pending one. Cancelling is always
    safe: a fired, cancelled or never-started timer is left alone.
    """

    def __init__(self) -> None:
        self._active_task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._active_task is not None and not self._active_task.done()

    def start(self, seconds: float, on_timeout: Callable[[], Awaitable[None]]) -> None:
        self.cancel()
        self._active_task = asyncio.create_task(self._run_timer(seconds, on_timeout))

    def cancel(self) -> None:
        task = self._active_task
        self._active_task = None
        # a timeout callback that ends the match cancels every timer,
        # including the one running it; cancelling that task would abort
        # the callback halfway through
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run_timer(self, seconds: float, on_timeout: Callable[[], Awaitable[None]]) -> None:
        try:
            await asyncio.sleep(seconds)
            await on_timeout()
        except asyncio.CancelledError:
            pass
        except (RuntimeError, OSError, ConnectionError, ValueError):  # fmt: skip
            logger.exception("deadline callback failed")
