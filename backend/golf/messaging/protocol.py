"""Abstract connection protocol for framed text communication."""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from golf.messaging.framer import encode


class ConnectionProtocol(ABC):
    """
    Abstract interface for a client connection.

    This abstraction allows match logic to be tested without real sockets.
    Inbound bytes are pushed into a match by whoever owns the read loop;
    the match only ever writes and closes.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Unique identifier for this connection."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None:
        """
        Send raw bytes to the client.

        Returns once the transport accepted the data; raises ConnectionError,
        OSError or RuntimeError if the connection is already gone.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Close the connection. Closing twice is a no-op.
        """
        ...

    async def send_message(self, message_type: str, payload: str | BaseModel | Any = "") -> None:
        """
        Frame and send one message.
        """
        await self.send_bytes(encode(message_type, payload))
