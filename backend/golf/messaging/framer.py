"""
Length-prefixed text framing for the duel wire protocol.

A frame is ``<length>:<type>:<payload>`` where ``length`` is the decimal
UTF-8 byte length of ``payload`` and ``type`` contains no colon. TCP does
not preserve message boundaries, so MessageFramer is a resumable parser:
each call consumes whatever bytes arrived and keeps partial fields buffered
until the next call completes them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel

from golf.exceptions import MalformedFrameError

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

DELIMITER = b":"

# Size limits so a misbehaving client cannot grow a buffer without bound.
MAX_LENGTH_DIGITS = 20
MAX_TYPE_LEN = 64
DEFAULT_MAX_PAYLOAD_LEN = 64 * 1024


class FramerState(StrEnum):
    AWAITING_LENGTH = "awaiting_length"
    AWAITING_TYPE = "awaiting_type"
    AWAITING_PAYLOAD = "awaiting_payload"


@dataclass(frozen=True, slots=True)
class Message:
    type: str
    payload: str


@dataclass(frozen=True, slots=True)
class ParsedMessage:
    """Single-result view of a feed call, see MessageFramer.parse."""

    completed: bool
    type: str
    message: str


def encode(message_type: str, payload: str | BaseModel | Any = "") -> bytes:
    """
    Serialize one message into a frame.

    String payloads are sent verbatim, pydantic models as their aliased JSON
    and anything else through compact json.dumps.
    """
    if DELIMITER.decode() in message_type:
        raise ValueError(f"message type must not contain ':', got {message_type!r}")
    if isinstance(payload, BaseModel):
        text = payload.model_dump_json(by_alias=True)
    elif isinstance(payload, str):
        text = payload
    else:
        text = json.dumps(payload, separators=(",", ":"))
    body = text.encode("utf-8")
    return b"%d:%s:%s" % (len(body), message_type.encode("utf-8"), body)


class MessageFramer:
    """
    Incremental frame parser for one connection.

    Not reentrant: exactly one receive path owns an instance.
    """

    def __init__(
        self,
        max_payload_length: int = DEFAULT_MAX_PAYLOAD_LEN,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self._max_payload_length = max_payload_length
        self._logger = logger or structlog.get_logger()
        self._state = FramerState.AWAITING_LENGTH
        self._buffer = bytearray()
        self._length = 0
        self._type = ""

    @property
    def state(self) -> FramerState:
        return self._state

    @property
    def buffered(self) -> int:
        """Bytes held for the field currently being read."""
        return len(self._buffer)

    def reset(self) -> None:
        self._state = FramerState.AWAITING_LENGTH
        self._buffer.clear()
        self._length = 0
        self._type = ""

    def feed(self, chunk: bytes | str) -> list[Message]:
        """
        Consume a chunk and return every message it completes, in order.

        Raises MalformedFrameError when the stream cannot be a valid frame;
        the framer is reset before raising and messages completed earlier in
        the same chunk are attached to the error as ``completed``.
        """
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")

        messages: list[Message] = []
        try:
            self._consume(chunk, messages)
        except MalformedFrameError as e:
            e.completed = messages
            raise
        return messages

    def _consume(self, chunk: bytes, messages: list[Message]) -> None:
        offset = 0
        while True:
            # a zero-length payload completes without consuming any input,
            # so this branch runs before the end-of-chunk check
            if self._state is FramerState.AWAITING_PAYLOAD:
                message, offset = self._read_payload(chunk, offset)
                if message is None:
                    break
                messages.append(message)
                continue

            if offset >= len(chunk):
                break

            if self._state is FramerState.AWAITING_LENGTH:
                field, offset = self._read_field(chunk, offset, MAX_LENGTH_DIGITS, "length")
                if field is None:
                    break
                self._length = self._parse_length(field)
                self._state = FramerState.AWAITING_TYPE
            else:
                field, offset = self._read_field(chunk, offset, MAX_TYPE_LEN, "type")
                if field is None:
                    break
                self._type = self._decode(field, "type")
                self._state = FramerState.AWAITING_PAYLOAD

    def parse(self, chunk: bytes | str) -> ParsedMessage:
        """
        Consume a chunk and report only the last message it completed.

        Earlier messages completed by the same chunk are dropped; use feed()
        to receive all of them.
        """
        messages = self.feed(chunk)
        if not messages:
            return ParsedMessage(completed=False, type=self._type, message="")
        last = messages[-1]
        return ParsedMessage(completed=True, type=last.type, message=last.payload)

    def _read_field(self, chunk: bytes, offset: int, limit: int, name: str) -> tuple[bytes | None, int]:
        idx = chunk.find(DELIMITER, offset)
        if idx == -1:
            self._buffer += chunk[offset:]
            if len(self._buffer) > limit:
                raise self._malformed(f"unterminated {name} field longer than {limit} bytes")
            return None, len(chunk)

        field = bytes(self._buffer) + chunk[offset:idx]
        self._buffer.clear()
        if len(field) > limit:
            raise self._malformed(f"{name} field longer than {limit} bytes")
        return field, idx + 1

    def _read_payload(self, chunk: bytes, offset: int) -> tuple[Message | None, int]:
        needed = self._length - len(self._buffer)
        available = len(chunk) - offset
        if available < needed:
            self._buffer += chunk[offset:]
            return None, len(chunk)

        body = bytes(self._buffer) + chunk[offset : offset + needed]
        self._buffer.clear()
        message = Message(type=self._type, payload=self._decode(body, "payload"))
        self._logger.debug("frame completed", message_type=message.type, length=self._length)
        self._state = FramerState.AWAITING_LENGTH
        self._length = 0
        return message, offset + needed

    def _parse_length(self, field: bytes) -> int:
        # bytes.isdigit() is ASCII-only and False for an empty field
        if not field.isdigit():
            raise self._malformed(f"length field is not a decimal number: {field[:MAX_LENGTH_DIGITS]!r}")
        length = int(field)
        if length > self._max_payload_length:
            raise self._malformed(f"payload too large: {length} bytes (max {self._max_payload_length})")
        return length

    def _decode(self, raw: bytes, name: str) -> str:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise self._malformed(f"{name} is not valid UTF-8: {e}") from e

    def _malformed(self, reason: str) -> MalformedFrameError:
        self._logger.warning("malformed frame", reason=reason, state=self._state)
        self.reset()
        return MalformedFrameError(reason)
