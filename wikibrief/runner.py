"""
Process lifecycle for the bot.

This module wires the collaborators together once at startup and runs:
1. Storage root creation and provider/transport construction
2. Transport connection (own identity lookup)
3. The receive loop, which only hands events to the dispatcher
4. Graceful drain of in-flight commands on SIGINT/SIGTERM or end of input

Any failure during steps 1-2 is fatal and propagates to the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
import signal

from rich.console import Console

from .chat.base import ChatTransport
from .chat.console import CONSOLE_ROOM, CONSOLE_USER, ConsoleTransport
from .chat.matrix import MatrixTransport
from .chat.reply import ReplyChannel
from .config import AppConfig, get_access_token
from .core.errors import BotError
from .core.store import SummaryStore
from .core.types import Command
from .dispatcher import CommandDispatcher
from .llm.providers.base import CompletionProvider
from .llm.providers.factory import create_provider
from .llm.summarizer import Summarizer
from .logging_utils import get_logger, log_event, setup_logging
from .pipeline import PipelineStats, SummaryPipeline, render_stats
from .tracing import flush, setup_langfuse
from .wiki.client import WikipediaClient
from .wiki.resolver import ArticleResolver


@dataclass
class Runtime:
    """Collaborators constructed once per process and shared by all commands."""

    cfg: AppConfig
    transport: ChatTransport
    wiki: WikipediaClient
    provider: CompletionProvider
    store: SummaryStore
    pipeline: SummaryPipeline

    async def aclose(self) -> None:
        await self.transport.aclose()
        await self.wiki.aclose()
        await self.provider.aclose()


async def build_runtime(cfg: AppConfig, transport: ChatTransport | None = None) -> Runtime:
    """Construct every collaborator from configuration.

    The transport is owned by the returned runtime and is closed here if a
    later collaborator cannot be built.

    Raises:
        StorageError: If the storage root cannot be created
        ConfigError: If credentials or the provider name are missing or invalid
    """
    store = SummaryStore(Path(cfg.bot.output_dir))
    store.ensure_root()

    if transport is None:
        transport = MatrixTransport(cfg.matrix, get_access_token(cfg.matrix))
    try:
        provider = create_provider(cfg.provider)
    except BotError:
        await transport.aclose()
        raise
    wiki = WikipediaClient(cfg.wikipedia)

    pipeline = SummaryPipeline(
        resolver=ArticleResolver(wiki),
        store=store,
        content_provider=wiki,
        summarizer=Summarizer.from_config(provider, cfg.provider),
        reply_channel=ReplyChannel(transport),
        single_flight=cfg.bot.single_flight,
    )
    return Runtime(
        cfg=cfg,
        transport=transport,
        wiki=wiki,
        provider=provider,
        store=store,
        pipeline=pipeline,
    )


async def serve(runtime: Runtime, drain_timeout: float | None = None) -> None:
    """Connect, receive events until stopped, then drain outstanding commands.

    Raises:
        TransportError: If the transport cannot connect
    """
    logger = get_logger()
    self_id = await runtime.transport.connect()
    dispatcher = CommandDispatcher(runtime.cfg.bot.command, self_id, runtime.pipeline.handle)
    log_event(
        logger,
        "Bot started",
        event="bot_start",
        self_id=self_id,
        trigger=runtime.cfg.bot.command,
        output_dir=str(runtime.store.root),
    )

    stop = asyncio.Event()
    installed = _install_signal_handlers(stop)
    receive_task = asyncio.create_task(_receive(runtime.transport, dispatcher), name="receive")
    stop_task = asyncio.create_task(stop.wait(), name="stop")
    try:
        await asyncio.wait({receive_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (receive_task, stop_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(receive_task, stop_task, return_exceptions=True)
        _remove_signal_handlers(installed)
        await dispatcher.drain(drain_timeout)
        log_event(logger, "Bot stopped", event="bot_stop")

    if not receive_task.cancelled():
        receive_task.result()


async def _receive(transport: ChatTransport, dispatcher: CommandDispatcher) -> None:
    async for event in transport.events():
        dispatcher.on_event(event)


def _install_signal_handlers(stop: asyncio.Event) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform/thread; Ctrl+C still raises KeyboardInterrupt
            continue
        installed.append(sig)
    return installed


def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)


def run_bot(
    cfg: AppConfig,
    transport: ChatTransport | None = None,
    console: Console | None = None,
    drain_timeout: float | None = None,
) -> PipelineStats:
    """Run the bot until it is stopped and return the collected statistics."""
    setup_logging(cfg.logging)
    setup_langfuse(cfg.langfuse)
    console = console or Console()

    async def _main() -> PipelineStats:
        runtime = await build_runtime(cfg, transport)
        try:
            await serve(runtime, drain_timeout=drain_timeout)
        finally:
            await runtime.aclose()
        return runtime.pipeline.stats

    try:
        stats = asyncio.run(_main())
    finally:
        flush()
    render_stats(stats, console)
    return stats


def run_console(cfg: AppConfig, console: Console | None = None) -> PipelineStats:
    """Run the bot against stdin/stdout instead of a chat server."""
    console = console or Console()
    return run_bot(cfg, transport=ConsoleTransport(console=console), console=console)


def lookup_once(cfg: AppConfig, query: str, console: Console | None = None) -> str:
    """Run a single lookup and print the reply; returns the reply text."""
    setup_logging(cfg.logging)
    setup_langfuse(cfg.langfuse)
    console = console or Console()

    async def _main() -> str:
        runtime = await build_runtime(cfg, ConsoleTransport(console=console))
        try:
            command = Command(
                origin_room=CONSOLE_ROOM,
                issuer=CONSOLE_USER,
                raw_text=f"{cfg.bot.command} {query}",
                query=query.strip(),
            )
            return await runtime.pipeline.handle(command)
        finally:
            await runtime.aclose()

    try:
        return asyncio.run(_main())
    finally:
        flush()
