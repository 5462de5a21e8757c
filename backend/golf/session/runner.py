"""Pair incoming connections into matches."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from golf.logic.timer import TimerConfig
from golf.messaging.framer import DEFAULT_MAX_PAYLOAD_LEN
from golf.puzzles import generate
from golf.session.match import Match
from shared.ids import IdAllocator

if TYPE_CHECKING:
    from collections.abc import Callable

    from golf.messaging.protocol import ConnectionProtocol
    from golf.puzzles.models import Puzzle
    from golf.session.models import MatchObserver, Player

logger = structlog.get_logger()


class MatchRunner:
    """Seat each new connection in the open match, or open a new one.

    At most one match is waiting for players at any time: the next
    connection joins it unless it is full or can no longer be played
    (ended, finished, failed, or someone disconnected), in which case a
    fresh match with a new puzzle is created.
    """

    def __init__(
        self,
        *,
        timer_config: TimerConfig | None = None,
        puzzle_provider: Callable[[], Puzzle] = generate,
        id_allocator: IdAllocator | None = None,
        max_capacity: int | None = None,
        max_payload_length: int = DEFAULT_MAX_PAYLOAD_LEN,
        clock: Callable[[], float] = time.monotonic,
        observers: list[MatchObserver] | None = None,
    ) -> None:
        self._timer_config = timer_config or TimerConfig()
        self._puzzle_provider = puzzle_provider
        self._ids = id_allocator or IdAllocator()
        self._max_capacity = max_capacity
        self._max_payload_length = max_payload_length
        self._clock = clock
        self._observers = list(observers or [])
        self._current: Match | None = None
        self._matches: dict[int, Match] = {}

    @property
    def current_match(self) -> Match | None:
        return self._current

    @property
    def live_matches(self) -> list[Match]:
        self._prune()
        return list(self._matches.values())

    @property
    def waiting_players(self) -> int:
        match = self._current
        if match is None or not self._is_joinable(match):
            return 0
        return len(match.players)

    def can_accept(self) -> bool:
        """Whether a new connection can be seated without exceeding capacity."""
        if self._current is not None and self._is_joinable(self._current):
            return True
        return self._max_capacity is None or len(self.live_matches) < self._max_capacity

    def add_player(self, connection: ConnectionProtocol) -> tuple[Match, Player]:
        match = self._current
        if match is None or not self._is_joinable(match):
            match = self._create_match()
        player = match.add_player(connection)
        logger.info(
            "player seated",
            match_id=match.match_id,
            player_id=player.player_id,
            connection_id=connection.connection_id,
        )
        return match, player

    def shutdown(self) -> None:
        """Cancel every pending deadline; used when the server stops."""
        for match in self._matches.values():
            match.cancel_timers()
        self._matches.clear()
        self._current = None

    @staticmethod
    def _is_joinable(match: Match) -> bool:
        return (
            match.needs_players()
            and not match.is_ended
            and not match.is_finished()
            and not match.has_failure()
            and not match.has_disconnection()
        )

    def _create_match(self) -> Match:
        self._prune()
        match = Match(
            self._ids.next_id(),
            self._puzzle_provider(),
            timer_config=self._timer_config,
            clock=self._clock,
            max_payload_length=self._max_payload_length,
        )
        for observer in self._observers:
            match.subscribe(observer)
        self._matches[match.match_id] = match
        self._current = match
        logger.info("match created", match_id=match.match_id, puzzle=match.puzzle.name)
        return match

    def _prune(self) -> None:
        for match_id in [mid for mid, m in self._matches.items() if m.is_ended]:
            del self._matches[match_id]
