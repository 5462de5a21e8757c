"""Shared helpers for driving a match from the client side."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from golf.messaging.framer import encode
from golf.messaging.types import MessageType
from golf.tests.mocks import MockConnection

if TYPE_CHECKING:
    from golf.session.match import Match
    from golf.session.models import Player


def join(match: Match) -> tuple[MockConnection, Player]:
    conn = MockConnection()
    player = match.add_player(conn)
    return conn, player


def join_two(match: Match) -> tuple[MockConnection, Player, MockConnection, Player]:
    conn1, p1 = join(match)
    conn2, p2 = join(match)
    return conn1, p1, conn2, p2


async def write_message(match: Match, player: Player, message_type: str, payload: Any = "") -> None:
    await match.receive(player, encode(message_type, payload))


async def ready_players(match: Match, *players: Player) -> None:
    for player in players:
        await write_message(match, player, MessageType.READY)


async def solve(match: Match, player: Player, keys: list[str], undo_count: int = 0) -> None:
    await write_message(match, player, MessageType.FINISHED, {"keys": keys, "undoCount": undo_count})


def flush(*conns: MockConnection) -> None:
    for conn in conns:
        conn.clear()


def results(conn: MockConnection) -> list[dict[str, Any]]:
    """Decode every terminal `finished` message sent to a connection."""
    return [json.loads(m.payload) for m in conn.sent_messages if m.type == MessageType.FINISHED]
