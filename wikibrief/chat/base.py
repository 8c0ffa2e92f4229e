"""Abstract interface for chat transports."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from ..core.types import ChatEvent


class ChatTransport(ABC):
    """A chat network the bot can listen on and reply to."""

    @abstractmethod
    async def connect(self) -> str:
        """Verify credentials and return the bot's own participant id.

        Raises:
            TransportError: If the transport cannot be reached or rejects the credentials
        """
        raise NotImplementedError

    @abstractmethod
    def events(self) -> AsyncIterator[ChatEvent]:
        """Yield inbound message events until the transport is closed."""
        raise NotImplementedError

    @abstractmethod
    async def send_text(self, room: str, text: str) -> None:
        """Send a plain-text message to a room.

        Raises:
            TransportError: If the message could not be delivered
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
