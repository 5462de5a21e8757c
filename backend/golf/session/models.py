from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from golf.logic.enums import PlayerPhase
from golf.logic.scoring import Stats
from golf.logic.timer import DeadlineTimer
from golf.messaging.framer import MessageFramer

if TYPE_CHECKING:
    from golf.messaging.protocol import ConnectionProtocol

# (event kind, details) -> None; called on every match state transition
MatchObserver = Callable[[str, dict[str, Any]], None]


@dataclass
class Player:
    """Represent one connected socket inside a match.

    Lifecycle:
    - Created by Match.add_player, which arms the ready deadline
    - ready: sent a `ready` message (ready deadline cancelled)
    - started: the start-game message was delivered (start-ack deadline cancelled)
    - finished / timed_out: terminal play state, mutually exclusive
    - failed / disconnected: may be set at any point and end the match
    """

    player_id: int
    connection: ConnectionProtocol
    framer: MessageFramer = field(default_factory=MessageFramer)
    stats: Stats = field(default_factory=Stats)
    deadline: DeadlineTimer = field(default_factory=DeadlineTimer)
    ready: bool = False
    started: bool = False
    finished: bool = False
    timed_out: bool = False
    failed: bool = False
    disconnected: bool = False
    failure_reason: str | None = None

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    @property
    def phase(self) -> PlayerPhase:
        if self.failed:
            return PlayerPhase.FAILED
        if self.finished:
            return PlayerPhase.FINISHED
        if self.timed_out:
            return PlayerPhase.TIMED_OUT
        if self.disconnected:
            return PlayerPhase.DISCONNECTED
        if self.started:
            return PlayerPhase.STARTED
        if self.ready:
            return PlayerPhase.READY
        return PlayerPhase.AWAITING_READY

    @property
    def forfeited(self) -> bool:
        """Left before finishing; a finished player may close their socket without losing."""
        return self.disconnected and not self.finished

    def fail(self, reason: str) -> None:
        self.failed = True
        self.failure_reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "phase": self.phase,
            "ready": self.ready,
            "started": self.started,
            "finished": self.finished,
            "timed_out": self.timed_out,
            "failed": self.failed,
            "disconnected": self.disconnected,
            "score": self.stats.score,
        }
