from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic.alias_generators import to_camel

WAITING_FOR_OPPONENT_TO_CONNECT = "Waiting for opponent to connect..."
WAITING_FOR_OPPONENT_TO_FINISH = "Waiting for other player to finish..."


class MessageType(StrEnum):
    READY = "ready"
    FINISHED = "finished"
    START_GAME = "start-game"
    WAITING = "waiting"


class WireModel(BaseModel):
    """JSON payload with camelCase keys on the wire and snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class FinishedPayload(WireModel):
    """Statistics a client reports once its buffer matches the goal text."""

    keys: list[StrictStr]
    undo_count: float = Field(strict=True, allow_inf_nan=False)


class StartGamePayload(WireModel):
    start_text: list[str]
    goal_text: list[str]


class GameResultMessage(WireModel):
    """Terminal outcome sent to each player as the server's `finished` message.

    The loser's copy mirrors the winner's differences with `winner` cleared
    and `expired` set when that player ran out of time.
    """

    failed: bool = False
    winner: bool = False
    expired: bool = False
    score_difference: float = 0
    keys_pressed_difference: int = 0
    time_difference: float = 0
    reason: str | None = None


def parse_finished_payload(payload: str) -> FinishedPayload:
    """Validate a raw `finished` payload. Raises pydantic.ValidationError."""
    return FinishedPayload.model_validate_json(payload)
