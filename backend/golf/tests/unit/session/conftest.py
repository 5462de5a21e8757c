import pytest

from golf.logic.timer import TimerConfig
from golf.session.match import Match
from golf.tests.conftest import TEST_PUZZLE

SHORT = 0.05
SLOW = 60


@pytest.fixture
async def make_match(clock):
    """Build matches with selected deadlines shortened; the rest never fire during a test."""
    created: list[Match] = []

    def _make(ready: float = SLOW, start_ack: float = SLOW, play: float = SLOW) -> Match:
        config = TimerConfig(
            ready_timeout_seconds=ready,
            start_ack_timeout_seconds=start_ack,
            play_timeout_seconds=play,
        )
        match = Match(len(created) + 1, TEST_PUZZLE, timer_config=config, clock=clock)
        created.append(match)
        return match

    yield _make
    for match in created:
        match.cancel_timers()
