"""
Command dispatcher.

Examines each inbound chat event and decides whether it is a command:

    "!wiki turing award"   -> Command(query="turing award"), task spawned
    "!wiki"                -> ignored (no separating space)
    "!wikipedia foo"       -> ignored (prefix must be "<trigger> ")
    "hello"                -> ignored
    anything from the bot  -> ignored

Each recognized command runs in its own asyncio task. The dispatcher
never waits for a command to finish; it only tracks outstanding tasks so
shutdown can drain them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .core.types import PLAIN_TEXT, ChatEvent, Command
from .logging_utils import get_logger, log_event


CommandHandler = Callable[[Command], Awaitable[object]]


class CommandDispatcher:
    """Turns matching chat events into independent command tasks."""

    def __init__(
        self,
        trigger: str,
        self_id: str,
        handler: CommandHandler,
        logger: logging.Logger | None = None,
    ):
        self.trigger = trigger
        self.prefix = f"{trigger} "
        self.self_id = self_id
        self.handler = handler
        self.logger = logger or get_logger("dispatcher")
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def parse(self, event: ChatEvent) -> Command | None:
        """Return the command carried by an event, or None if it is not one."""
        if event.sender == self.self_id:
            return None
        if event.type != PLAIN_TEXT:
            return None
        if not event.body.startswith(self.prefix):
            return None
        query = event.body[len(self.prefix):].strip()
        return Command(
            origin_room=event.room,
            issuer=event.sender,
            raw_text=event.body,
            query=query,
        )

    def on_event(self, event: ChatEvent) -> asyncio.Task | None:
        """Spawn a task for a matching event and return immediately.

        Must be called from inside a running event loop.
        """
        command = self.parse(event)
        if command is None:
            return None

        log_event(
            self.logger,
            "Command received",
            event="command_received",
            room=command.origin_room,
            issuer=command.issuer,
            query=command.query,
        )
        task = asyncio.create_task(self.handler(command), name=f"command:{command.query[:40]}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding command tasks to finish.

        Tasks still running after ``timeout`` seconds are cancelled.
        """
        if not self._tasks:
            return
        pending = set(self._tasks)
        log_event(self.logger, "Draining commands", event="drain_start", pending=len(pending))
        _done, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            log_event(
                self.logger,
                "Cancelled unfinished commands",
                level=logging.WARNING,
                event="drain_timeout",
                cancelled=len(still_pending),
            )

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error(
                "Command task %s crashed", task.get_name(), exc_info=(type(exc), exc, exc.__traceback__)
            )
