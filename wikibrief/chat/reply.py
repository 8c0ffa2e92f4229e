"""Reply delivery back into the originating room."""

from __future__ import annotations

import logging

from ..core.errors import TransportError
from ..logging_utils import get_logger, log_event
from .base import ChatTransport


class ReplyChannel:
    """Sends final command output through a chat transport.

    Delivery failures are logged and reported through the return value;
    they never propagate into the command that produced the reply.
    """

    def __init__(self, transport: ChatTransport, logger: logging.Logger | None = None):
        self.transport = transport
        self.logger = logger or get_logger("reply")

    async def send(self, room: str, text: str) -> bool:
        try:
            await self.transport.send_text(room, text)
        except TransportError as exc:
            log_event(
                self.logger,
                "Reply failed",
                level=logging.ERROR,
                event="reply_failed",
                room=room,
                error=str(exc),
            )
            return False
        log_event(self.logger, "Reply sent", event="reply_sent", room=room, length=len(text))
        return True
