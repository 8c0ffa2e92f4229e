"""Local terminal transport for trying the bot without a chat server."""

from __future__ import annotations

import asyncio
import sys
import threading
from typing import AsyncIterator, TextIO

from rich.console import Console

from ..core.types import PLAIN_TEXT, ChatEvent
from .base import ChatTransport


CONSOLE_ROOM = "console"
CONSOLE_USER = "you"
CONSOLE_BOT = "wikibrief"


class ConsoleTransport(ChatTransport):
    """Reads commands line by line from a stream and prints replies.

    Every line becomes a plain-text message from CONSOLE_USER in a single
    room. The event stream ends at end of input.

    Lines are read on a daemon thread, so a reader blocked on an idle
    terminal never holds up event-loop shutdown after Ctrl+C.
    """

    def __init__(self, console: Console | None = None, stream: TextIO | None = None):
        self.console = console or Console()
        self.stream = stream or sys.stdin

    async def connect(self) -> str:
        return CONSOLE_BOT

    async def events(self) -> AsyncIterator[ChatEvent]:
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue[str] = asyncio.Queue()
        reader = threading.Thread(
            target=self._pump_lines, args=(loop, lines), name="console-reader", daemon=True
        )
        reader.start()
        while True:
            line = await lines.get()
            if not line:
                return
            yield ChatEvent(sender=CONSOLE_USER, room=CONSOLE_ROOM, body=line.rstrip("\n"), type=PLAIN_TEXT)

    async def send_text(self, room: str, text: str) -> None:
        self.console.print(f"[bold cyan]{CONSOLE_BOT}[/bold cyan] ({room}):")
        self.console.print(text, markup=False, highlight=False)

    def _pump_lines(self, loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str]) -> None:
        while True:
            try:
                line = self.stream.readline()
            except (OSError, ValueError):
                # closed or unreadable stream counts as end of input
                line = ""
            try:
                loop.call_soon_threadsafe(lines.put_nowait, line)
            except RuntimeError:
                # event loop already closed
                return
            if not line:
                return
