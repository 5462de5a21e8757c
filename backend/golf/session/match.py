"""Two-player match state machine.

A match moves forward only in reaction to three event sources: inbound data
from either player, a player's connection closing, and deadline expiry. All
of them run on one event loop, so no locks are taken; instead end_game sets
the terminal guard before its first await, which makes ending idempotent
when a finish, a disconnect and a deadline race each other.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from golf.exceptions import MalformedFrameError, MatchFullError, MatchInvariantError
from golf.logic.enums import DeadlineType, EndReason
from golf.logic.timer import DeadlineTimer, TimerConfig
from golf.messaging.framer import DEFAULT_MAX_PAYLOAD_LEN, MessageFramer, encode
from golf.messaging.types import (
    WAITING_FOR_OPPONENT_TO_CONNECT,
    WAITING_FOR_OPPONENT_TO_FINISH,
    GameResultMessage,
    MessageType,
    StartGamePayload,
    parse_finished_payload,
)
from golf.session.models import Player

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from golf.messaging.framer import Message
    from golf.messaging.protocol import ConnectionProtocol
    from golf.puzzles.models import Puzzle
    from golf.session.models import MatchObserver

logger = structlog.get_logger()

NO_READY_MESSAGE = "Did not receive a ready command within {seconds:g} seconds of connection."
NO_START_ACK_MESSAGE = "Was unable to send a start game command."
INVALID_STATS_MESSAGE = "Sent a finished message with invalid statistics."
FINISHED_BEFORE_START_MESSAGE = "Sent a finished message before the game started."
MALFORMED_FRAME_MESSAGE = "Sent a malformed message: {error}"
NO_OPPONENT_MESSAGE = "No opponent connected within {seconds:g} seconds."

_SEND_ERRORS = (ConnectionError, OSError, RuntimeError)


class Match:
    MAX_PLAYERS = 2

    def __init__(
        self,
        match_id: int,
        puzzle: Puzzle,
        *,
        timer_config: TimerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        max_payload_length: int = DEFAULT_MAX_PAYLOAD_LEN,
    ) -> None:
        self.match_id = match_id
        self._puzzle = puzzle
        self._config = timer_config or TimerConfig()
        self._clock = clock
        self._max_payload_length = max_payload_length
        self._p1: Player | None = None
        self._p2: Player | None = None
        self._ended = False
        self._end_reason: EndReason | None = None
        # set when the match itself fails without a player at fault
        self._failure_reason: str | None = None
        self._play_deadline = DeadlineTimer()
        self._opponent_deadline = DeadlineTimer()
        self._observers: list[MatchObserver] = []
        self._log = logger.bind(match_id=match_id)
        self._handlers: dict[str, Callable[[Player, str], Awaitable[None]]] = {
            MessageType.READY: self._handle_ready,
            MessageType.FINISHED: self._handle_finished,
        }

    @property
    def p1(self) -> Player | None:
        return self._p1

    @property
    def p2(self) -> Player | None:
        return self._p2

    @property
    def players(self) -> list[Player]:
        return [p for p in (self._p1, self._p2) if p is not None]

    @property
    def puzzle(self) -> Puzzle:
        return self._puzzle

    @property
    def is_ended(self) -> bool:
        return self._ended

    @property
    def end_reason(self) -> EndReason | None:
        return self._end_reason

    def subscribe(self, observer: MatchObserver) -> None:
        self._observers.append(observer)

    def _emit(self, kind: str, **details: Any) -> None:
        self._log.debug(kind, **details)
        for observer in list(self._observers):
            observer(kind, details)

    def needs_players(self) -> bool:
        return self._p1 is None or self._p2 is None

    def is_finished(self) -> bool:
        """Both seats are filled and neither player is still playing."""
        if self._p1 is None or self._p2 is None:
            return False
        return all(p.finished or p.timed_out or p.disconnected for p in (self._p1, self._p2))

    def has_failure(self) -> bool:
        return self._failure_reason is not None or any(p.failed for p in self.players)

    def has_disconnection(self) -> bool:
        return any(p.disconnected for p in self.players)

    def add_player(self, connection: ConnectionProtocol) -> Player:
        """Seat a connection in the first open slot and arm its ready deadline."""
        if self._ended:
            raise MatchFullError(f"match {self.match_id} has already ended")
        if not self.needs_players():
            raise MatchFullError(f"match {self.match_id} already has {self.MAX_PLAYERS} players")

        player_id = 1 if self._p1 is None else 2
        player = Player(
            player_id=player_id,
            connection=connection,
            framer=MessageFramer(
                max_payload_length=self._max_payload_length,
                logger=self._log.bind(player_id=player_id),
            ),
        )
        if player_id == 1:
            self._p1 = player
        else:
            self._p2 = player
            self._opponent_deadline.cancel()

        self._emit("player_added", player_id=player_id, connection_id=connection.connection_id)
        player.deadline.start(
            self._config.ready_timeout_seconds,
            lambda p=player: self._on_ready_deadline(p),
        )
        return player

    async def receive(self, player: Player, data: bytes) -> None:
        """Feed inbound bytes from a player's connection and act on every completed message."""
        if self._ended or player.disconnected:
            return

        try:
            messages = player.framer.feed(data)
        except MalformedFrameError as e:
            player.fail(MALFORMED_FRAME_MESSAGE.format(error=e))
            # messages completed before the bad bytes are dropped with the sender
            self._emit(
                "malformed_frame",
                player_id=player.player_id,
                error=str(e),
                discarded=len(e.completed),
            )
            await self.end_game(force=True)
            return

        for message in messages:
            if self._ended:
                return
            await self._dispatch(player, message)

    async def disconnect(self, player: Player) -> None:
        """Handle a player's connection closing, from either side."""
        if self._ended or player.disconnected:
            return

        player.disconnected = True
        player.deadline.cancel()
        self._emit("player_disconnected", player_id=player.player_id, finished=player.finished)
        if not player.finished:
            await self.end_game(force=True)

    async def _dispatch(self, player: Player, message: Message) -> None:
        self._emit("message_received", player_id=player.player_id, message_type=message.type)
        handler = self._handlers.get(message.type)
        if handler is None:
            self._log.warning("unknown message type", player_id=player.player_id, message_type=message.type)
            return
        await handler(player, message.payload)

    async def _handle_ready(self, player: Player, _payload: str) -> None:
        if player.ready:
            return

        player.ready = True
        player.deadline.cancel()
        self._emit("player_ready", player_id=player.player_id)

        if self._p1 is None or self._p2 is None or not (self._p1.ready and self._p2.ready):
            if self.needs_players():
                self._opponent_deadline.start(self._config.ready_timeout_seconds, self._on_opponent_deadline)
            await self._send(player, MessageType.WAITING, WAITING_FOR_OPPONENT_TO_CONNECT)
            return

        await self._start_game(self._p1, self._p2)

    async def _start_game(self, p1: Player, p2: Player) -> None:
        data = encode(
            MessageType.START_GAME,
            StartGamePayload(start_text=list(self._puzzle.start_text), goal_text=list(self._puzzle.goal_text)),
        )
        self._emit("start_game", puzzle=self._puzzle.name)

        for player in (p1, p2):
            player.deadline.start(
                self._config.start_ack_timeout_seconds,
                lambda p=player: self._on_start_ack_deadline(p),
            )
        await asyncio.gather(self._deliver_start(p1, data), self._deliver_start(p2, data))

    async def _deliver_start(self, player: Player, data: bytes) -> None:
        try:
            await player.connection.send_bytes(data)
        except _SEND_ERRORS as e:
            # no retry: the start-ack deadline fails the player
            self._log.warning("start-game delivery failed", player_id=player.player_id, error=str(e))
            return

        if self._ended or player.failed:
            return

        player.deadline.cancel()
        player.started = True
        player.stats.start(self._clock())
        self._emit("player_started", player_id=player.player_id)

        if all(p.started for p in self.players) and len(self.players) == self.MAX_PLAYERS:
            self._play_deadline.start(self._config.play_timeout_seconds, self._on_play_deadline)
            self._emit("play_deadline_armed", seconds=self._config.play_timeout_seconds)

    async def _handle_finished(self, player: Player, payload: str) -> None:
        if player.finished:
            self._log.warning("duplicate finished message ignored", player_id=player.player_id)
            return

        if not player.started:
            player.fail(FINISHED_BEFORE_START_MESSAGE)
            self._emit("player_failed", player_id=player.player_id, reason=player.failure_reason)
            await self.end_game()
            return

        try:
            stats = parse_finished_payload(payload)
        except ValidationError as e:
            player.fail(INVALID_STATS_MESSAGE)
            self._emit("player_failed", player_id=player.player_id, reason=player.failure_reason, error=str(e))
            await self.end_game()
            return

        player.stats.calculate_score(stats.keys, self._clock())
        player.finished = True
        self._emit(
            "player_finished",
            player_id=player.player_id,
            score=player.stats.score,
            keys=len(stats.keys),
            undo_count=stats.undo_count,
            time_taken_ms=player.stats.time_taken_ms,
        )

        if not await self.end_game():
            await self._send(player, MessageType.WAITING, WAITING_FOR_OPPONENT_TO_FINISH)

    async def _on_ready_deadline(self, player: Player) -> None:
        if self._ended or player.ready:
            return
        player.fail(NO_READY_MESSAGE.format(seconds=self._config.ready_timeout_seconds))
        self._emit("deadline_expired", deadline=DeadlineType.READY, player_id=player.player_id)
        await self.end_game(force=True)

    async def _on_start_ack_deadline(self, player: Player) -> None:
        if self._ended or player.started:
            return
        player.fail(NO_START_ACK_MESSAGE)
        self._emit("deadline_expired", deadline=DeadlineType.START_ACK, player_id=player.player_id)
        await self.end_game(force=True)

    async def _on_opponent_deadline(self) -> None:
        if self._ended or not self.needs_players():
            return
        self._failure_reason = NO_OPPONENT_MESSAGE.format(seconds=self._config.ready_timeout_seconds)
        self._emit("deadline_expired", deadline=DeadlineType.OPPONENT)
        await self.end_game(force=True)

    async def _on_play_deadline(self) -> None:
        if self._ended:
            return
        for player in self.players:
            if not player.finished:
                player.timed_out = True
        self._emit("deadline_expired", deadline=DeadlineType.PLAY)
        await self.end_game(force=True)

    async def end_game(self, force: bool = False) -> bool:
        """
        End the match if it is over, or unconditionally when forced.

        Returns True when the match has ended (now or earlier) and False when
        it continues. A player failure always ends it, forced or not.
        """
        if self._ended:
            return True

        if self.has_failure():
            await self._fatal_ending()
            return True

        if not force and not self.is_finished() and not self.has_disconnection():
            return False

        players = self.players
        if len(players) == self.MAX_PLAYERS and all(p.timed_out for p in players):
            await self._expired_ending(players)
        elif len(players) == self.MAX_PLAYERS:
            await self._winner_ending()
        else:
            await self._abandoned_ending(players)
        return True

    def cancel_timers(self) -> None:
        self._play_deadline.cancel()
        self._opponent_deadline.cancel()
        for player in self.players:
            player.deadline.cancel()

    def _mark_ended(self, reason: EndReason) -> None:
        self._ended = True
        self._end_reason = reason
        self.cancel_timers()
        self._emit("match_ended", reason=reason, players=[p.to_dict() for p in self.players])

    async def _fatal_ending(self) -> None:
        if self._p1 is None:
            raise MatchInvariantError(f"match {self.match_id} has a failure but no first player")
        failed = [p for p in self.players if p.failed]
        self._mark_ended(EndReason.FAILURE if failed else EndReason.NO_OPPONENT)

        # every player learns the match failed; the reason names the cause
        match_reason = failed[0].failure_reason if failed else self._failure_reason
        sends = [
            self._send_and_close(player, GameResultMessage(failed=True, reason=player.failure_reason or match_reason))
            for player in self.players
        ]
        await asyncio.gather(*sends)

    async def _expired_ending(self, players: list[Player]) -> None:
        self._mark_ended(EndReason.EXPIRED)
        result = GameResultMessage(winner=False, expired=True, score_difference=0)
        await asyncio.gather(*(self._send_and_close(p, result) for p in players))

    async def _abandoned_ending(self, players: list[Player]) -> None:
        # the only player left; a forced end here comes from their own disconnect
        self._mark_ended(EndReason.ABANDONED)
        for player in players:
            await self._send_and_close(player, GameResultMessage(winner=not player.disconnected))

    async def _winner_ending(self) -> None:
        winner, loser = self._pick_winner()
        self._mark_ended(EndReason.FORFEIT if loser.forfeited else EndReason.COMPLETED)

        result = GameResultMessage(
            winner=True,
            expired=False,
            score_difference=winner.stats.score - loser.stats.score,
            keys_pressed_difference=len(winner.stats.keys_pressed) - len(loser.stats.keys_pressed),
            time_difference=winner.stats.time_taken_ms - loser.stats.time_taken_ms,
        )
        loser_result = result.model_copy(update={"winner": False, "expired": loser.timed_out})
        self._emit(
            "winner_decided",
            winner_id=winner.player_id,
            loser_id=loser.player_id,
            score_difference=result.score_difference,
        )
        await asyncio.gather(self._send_and_close(winner, result), self._send_and_close(loser, loser_result))

    def _pick_winner(self) -> tuple[Player, Player]:
        """
        Return (winner, loser).

        Order of precedence: a forfeit loses, a finisher beats a non-finisher,
        then the higher score wins; equal scores go to the earlier finisher,
        and an exact tie on both to player 1.
        """
        p1, p2 = self._p1, self._p2
        if p1 is None or p2 is None:
            raise MatchInvariantError(f"match {self.match_id} picked a winner without two players")

        if p1.forfeited != p2.forfeited:
            return (p2, p1) if p1.forfeited else (p1, p2)
        if p1.finished != p2.finished:
            return (p1, p2) if p1.finished else (p2, p1)
        if p1.stats.score != p2.stats.score:
            return (p1, p2) if p1.stats.score > p2.stats.score else (p2, p1)
        p1_at, p2_at = p1.stats.finished_at, p2.stats.finished_at
        if p2_at is not None and (p1_at is None or p2_at < p1_at):
            return p2, p1
        return p1, p2

    async def _send(self, player: Player, message_type: str, payload: Any) -> None:
        try:
            await player.connection.send_message(message_type, payload)
        except _SEND_ERRORS as e:
            self._log.warning("send failed", player_id=player.player_id, message_type=message_type, error=str(e))

    async def _send_and_close(self, player: Player, result: GameResultMessage) -> None:
        if not player.disconnected:
            await self._send(player, MessageType.FINISHED, result)
        with contextlib.suppress(*_SEND_ERRORS):
            await player.connection.close()

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "puzzle": self._puzzle.name,
            "ended": self._ended,
            "end_reason": self._end_reason,
            "players": [p.to_dict() for p in self.players],
        }
