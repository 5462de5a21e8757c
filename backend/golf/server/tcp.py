from __future__ import annotations

import asyncio
import contextlib
from functools import partial
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from golf.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()

if TYPE_CHECKING:
    from golf.session.runner import MatchRunner

_READ_CHUNK_SIZE = 4096


class StreamConnection(ConnectionProtocol):
    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        connection_id: str | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._connection_id = connection_id or str(uuid4())
        self._closed = False

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def peer(self) -> str:
        peername = self._writer.get_extra_info("peername")
        return f"{peername[0]}:{peername[1]}" if peername else "unknown"

    async def send_bytes(self, data: bytes) -> None:
        if self._closed or self._writer.is_closing():
            raise ConnectionError("connection already closed")
        self._writer.write(data)
        await self._writer.drain()

    async def receive_bytes(self) -> bytes:
        """Read the next chunk; an empty result means the peer closed its side."""
        return await self._reader.read(_READ_CHUNK_SIZE)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await self._writer.wait_closed()


async def handle_client(reader: asyncio.StreamReader, writer: asyncio.StreamWriter, runner: MatchRunner) -> None:
    connection = StreamConnection(reader, writer)
    log = logger.bind(connection_id=connection.connection_id)

    if not runner.can_accept():
        log.warning("server at capacity, refusing connection", peer=connection.peer)
        await connection.close()
        return

    match, player = runner.add_player(connection)
    log.info("client connected", peer=connection.peer, match_id=match.match_id, player_id=player.player_id)

    try:
        while True:
            data = await connection.receive_bytes()
            if not data:
                break
            await match.receive(player, data)
    except (ConnectionError, OSError) as e:
        log.info("connection error", error=str(e))
    finally:
        log.info("client disconnected", match_id=match.match_id, player_id=player.player_id)
        await match.disconnect(player)
        await connection.close()


async def serve(runner: MatchRunner, host: str, port: int) -> asyncio.Server:
    """Start listening for duel clients. The caller owns the returned server."""
    server = await asyncio.start_server(partial(handle_client, runner=runner), host, port)
    for sock in server.sockets:
        logger.info("duel server listening", address=sock.getsockname())
    return server
