import pytest

from golf.logic.timer import TimerConfig
from golf.puzzles.models import Puzzle
from golf.session.match import Match


class FakeClock:
    """Manually advanced clock, in seconds, standing in for time.monotonic."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


TEST_PUZZLE = Puzzle(name="test", start_text=("foo",), goal_text=("bar",))

# Long enough that no deadline fires unless a test shortens it.
SLOW_TIMERS = TimerConfig(ready_timeout_seconds=60, start_ack_timeout_seconds=60, play_timeout_seconds=60)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def match(clock):
    match = Match(1, TEST_PUZZLE, timer_config=SLOW_TIMERS, clock=clock)
    yield match
    match.cancel_timers()
