"""
Per-command lookup pipeline.

For a single command this module runs, in order:
1. Resolve the query to a canonical article title
2. Serve the cached summary if the title has one
3. Otherwise fetch the article text
4. Summarize it with the generative-text provider
5. Store the summary
6. Reply with the summary, or with a one-line error naming the failed stage

Every stage error is terminal for its command and is converted into a chat
reply here; nothing is retried and nothing propagates to other commands.

With single-flight enabled, steps 2-5 run under a per-storage-key lock so
concurrent commands for the same new title generate and write only once.
With it disabled, such commands race: each fetches and generates, and the
last write wins.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
import logging
from typing import AsyncIterator, Protocol
import weakref

from rich.console import Console

from .chat.reply import ReplyChannel
from .core.errors import (
    BotError,
    FetchError,
    GenerationError,
    ResolutionError,
    StorageError,
)
from .core.store import SummaryStore
from .core.types import Command, SummaryResult
from .llm.summarizer import Summarizer
from .logging_utils import get_logger, log_event
from .tracing import record_span_error, set_span_output, start_span
from .wiki.resolver import ArticleResolver


class ContentProvider(Protocol):
    async def fetch_content(self, title: str) -> str: ...


@dataclass
class PipelineStats:
    """Counters collected across all commands handled by one pipeline.

    Attributes:
        commands: Commands processed (successful or not)
        cache_hits: Replies served from stored summaries
        generated: Summaries produced and stored
        failures: Failed commands per stage ("resolve", "fetch", "generate", "storage", "internal")
    """
    commands: int = 0
    cache_hits: int = 0
    generated: int = 0
    failures: dict[str, int] = field(default_factory=dict)

    def record_failure(self, stage: str) -> None:
        self.failures[stage] = self.failures.get(stage, 0) + 1


def failure_stage(exc: BaseException) -> str:
    if isinstance(exc, ResolutionError):
        return "resolve"
    if isinstance(exc, FetchError):
        return "fetch"
    if isinstance(exc, GenerationError):
        return "generate"
    if isinstance(exc, StorageError):
        return "storage"
    return "internal"


def format_failure(query: str, exc: BaseException) -> str:
    """Build the one-line chat reply for a failed command."""
    stage = failure_stage(exc)
    if stage == "resolve":
        return f"Could not find an article for '{query}': {exc}"
    if stage == "fetch":
        return f"Could not fetch the article for '{query}': {exc}"
    if stage == "generate":
        return f"Could not summarize the article for '{query}': {exc}"
    if stage == "storage":
        return f"Could not access the summary cache for '{query}': {exc}"
    return f"Internal error while handling '{query}': {type(exc).__name__}"


class SummaryPipeline:
    """Resolve, cache-check, fetch, summarize, store and reply for one command."""

    def __init__(
        self,
        resolver: ArticleResolver,
        store: SummaryStore,
        content_provider: ContentProvider,
        summarizer: Summarizer,
        reply_channel: ReplyChannel,
        single_flight: bool = True,
        logger: logging.Logger | None = None,
    ):
        self.resolver = resolver
        self.store = store
        self.content_provider = content_provider
        self.summarizer = summarizer
        self.reply_channel = reply_channel
        self.single_flight = single_flight
        self.logger = logger or get_logger("pipeline")
        self.stats = PipelineStats()
        self._title_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def handle(self, command: Command) -> str:
        """Process one command and send exactly one reply.

        Returns:
            The reply text that was sent (summary or error line)
        """
        self.stats.commands += 1
        with start_span(
            "wikibrief.command",
            kind="chain",
            input_value=command.query,
            attributes={"room": command.origin_room, "issuer": command.issuer},
        ) as span:
            try:
                result = await self.lookup(command.query)
            except BotError as exc:
                reply = self._fail(command, exc, span)
            except Exception as exc:  # noqa: BLE001
                self.logger.exception("Unexpected error handling %r", command.query)
                reply = self._fail(command, exc, span)
            else:
                reply = result.text
                set_span_output(span, {"title": result.title, "origin": result.origin})

        await self.reply_channel.send(command.origin_room, reply)
        return reply

    async def lookup(self, query: str) -> SummaryResult:
        """Return the summary for a query, generating and storing it on a cache miss.

        Raises:
            ResolutionError: If no article matches the query
            FetchError: If the article text cannot be retrieved
            GenerationError: If summarization fails
            StorageError: If the cache cannot be read or written
        """
        title = await self.resolver.resolve(query)
        log_event(self.logger, "Query resolved", event="query_resolved", query=query, title=title)

        async with self._title_gate(self.store.key_for(title)):
            if self.store.has(title):
                text = self.store.read(title)
                self.stats.cache_hits += 1
                log_event(self.logger, "Summary cache hit", event="cache_hit", title=title)
                return SummaryResult(title=title, text=text, origin="cache")

            log_event(self.logger, "Summary cache miss", event="cache_miss", title=title)
            content = await self.content_provider.fetch_content(title)
            text = await self.summarizer.summarize(content)
            path = self.store.write(title, text)
            self.stats.generated += 1
            log_event(
                self.logger,
                "Summary generated",
                event="summary_generated",
                title=title,
                path=str(path),
                content_chars=len(content),
                summary_chars=len(text),
            )
            return SummaryResult(title=title, text=text, origin="generated")

    @asynccontextmanager
    async def _title_gate(self, key: str) -> AsyncIterator[None]:
        if not self.single_flight:
            yield
            return
        lock = self._title_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._title_locks[key] = lock
        async with lock:
            yield

    def _fail(self, command: Command, exc: BaseException, span) -> str:
        stage = failure_stage(exc)
        self.stats.record_failure(stage)
        record_span_error(span, exc)
        log_event(
            self.logger,
            "Command failed",
            level=logging.WARNING,
            event="stage_failed",
            stage=stage,
            query=command.query,
            room=command.origin_room,
            error=str(exc),
        )
        return format_failure(command.query, exc)


def render_stats(stats: PipelineStats, console: Console) -> None:
    """Display pipeline statistics to the console."""
    failures = ", ".join(f"{stage}={count}" for stage, count in sorted(stats.failures.items()))
    console.print(
        "[bold]Command summary[/bold]: "
        f"commands={stats.commands}, cache_hits={stats.cache_hits}, "
        f"generated={stats.generated}, failures={{{failures}}}"
    )
