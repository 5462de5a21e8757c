import asyncio
from uuid import uuid4

from golf.messaging.framer import Message, MessageFramer
from golf.messaging.protocol import ConnectionProtocol


class MockConnection(ConnectionProtocol):
    def __init__(self, connection_id: str | None = None) -> None:
        self._connection_id = connection_id or str(uuid4())
        self._outbox: list[bytes] = []
        self._closed = False
        self.close_calls = 0
        self.send_error: Exception | None = None
        # when set, sends wait for this event before completing
        self.send_gate: asyncio.Event | None = None

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def raw_writes(self) -> list[bytes]:
        return self._outbox.copy()

    @property
    def sent_messages(self) -> list[Message]:
        framer = MessageFramer()
        messages: list[Message] = []
        for data in self._outbox:
            messages.extend(framer.feed(data))
        return messages

    @property
    def is_closed(self) -> bool:
        return self._closed

    def clear(self) -> None:
        self._outbox.clear()

    async def send_bytes(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Connection is closed")
        if self.send_error is not None:
            raise self.send_error
        if self.send_gate is not None:
            await self.send_gate.wait()
        self._outbox.append(data)

    async def close(self) -> None:
        self._closed = True
        self.close_calls += 1
