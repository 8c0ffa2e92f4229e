"""Tests for the resolve -> cache -> fetch -> summarize -> store -> reply pipeline."""

from __future__ import annotations

import asyncio

from wikibrief.chat.reply import ReplyChannel
from wikibrief.core.errors import FetchError, GenerationError, StorageError, TransportError
from wikibrief.core.store import SummaryStore
from wikibrief.core.types import Command
from wikibrief.llm.summarizer import Summarizer
from wikibrief.pipeline import SummaryPipeline, format_failure
from wikibrief.wiki.resolver import ArticleResolver


class _FakeSearch:
    def __init__(self, titles: dict[str, str], delay: float = 0.0):
        self.titles = titles
        self.delay = delay
        self.calls: list[str] = []

    async def search(self, query, limit=1):  # noqa: ANN001
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        title = self.titles.get(query)
        return [title] if title else []


class _FakeContent:
    def __init__(self, error: Exception | None = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def fetch_content(self, title):  # noqa: ANN001
        self.calls.append(title)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return f"Full article text about {title}."


class _FakeProvider:
    def __init__(self, replies: dict[str, str] | None = None, error: Exception | None = None, delay: float = 0.0):
        self.replies = replies or {}
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str, str]] = []

    async def complete(self, system_prompt, user_content, model):  # noqa: ANN001
        self.calls.append((system_prompt, user_content, model))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        for title, reply in self.replies.items():
            if title in user_content:
                return reply
        return "Generic summary."

    async def aclose(self):
        return None


class _FakeTransport:
    def __init__(self, error: Exception | None = None):
        self.sent: list[tuple[str, str]] = []
        self.error = error

    async def send_text(self, room, text):  # noqa: ANN001
        if self.error:
            raise self.error
        self.sent.append((room, text))


def _build(
    tmp_path,
    titles=None,
    content=None,
    provider=None,
    transport=None,
    single_flight=True,
    store=None,
):
    search = _FakeSearch(titles if titles is not None else {"turing award": "Turing Award"})
    content = content or _FakeContent()
    provider = provider or _FakeProvider({"Turing Award": "The Turing Award is..."})
    transport = transport or _FakeTransport()
    store = store or SummaryStore(tmp_path)
    store.ensure_root()
    pipeline = SummaryPipeline(
        resolver=ArticleResolver(search),
        store=store,
        content_provider=content,
        summarizer=Summarizer(provider, "Summarize this.", "test-model"),
        reply_channel=ReplyChannel(transport),
        single_flight=single_flight,
    )
    return pipeline, search, content, provider, transport, store


def _command(query: str, room: str = "!room:example.org") -> Command:
    return Command(origin_room=room, issuer="@alice:example.org", raw_text=f"!wiki {query}", query=query)


def test_cache_miss_generates_stores_and_replies(tmp_path):
    pipeline, _search, content, provider, transport, store = _build(tmp_path)

    reply = asyncio.run(pipeline.handle(_command("turing award")))

    assert reply == "The Turing Award is..."
    assert transport.sent == [("!room:example.org", "The Turing Award is...")]
    assert (tmp_path / "Turing Award.txt").read_text(encoding="utf-8") == "The Turing Award is..."
    assert store.has("Turing Award")
    assert store.read("Turing Award") == "The Turing Award is..."
    assert content.calls == ["Turing Award"]
    assert provider.calls == [
        ("Summarize this.", "Full article text about Turing Award.", "test-model")
    ]
    assert pipeline.stats.generated == 1
    assert pipeline.stats.cache_hits == 0


def test_second_query_is_served_from_cache(tmp_path):
    pipeline, _search, content, provider, transport, _store = _build(tmp_path)

    asyncio.run(pipeline.handle(_command("turing award")))
    reply = asyncio.run(pipeline.handle(_command("turing award")))

    assert reply == "The Turing Award is..."
    assert len(content.calls) == 1
    assert len(provider.calls) == 1
    assert [text for _room, text in transport.sent] == ["The Turing Award is..."] * 2
    assert pipeline.stats.cache_hits == 1


def test_existing_entry_short_circuits_fetch_and_generation(tmp_path):
    store = SummaryStore(tmp_path)
    store.write("Turing Award", "Stored long ago.")
    pipeline, _search, content, provider, transport, _ = _build(tmp_path, store=store)

    result = asyncio.run(pipeline.lookup("turing award"))

    assert result.origin == "cache"
    assert result.text == "Stored long ago."
    assert content.calls == []
    assert provider.calls == []
    assert transport.sent == []


def test_unknown_query_replies_not_found_without_cache_file(tmp_path):
    pipeline, _search, content, provider, transport, _store = _build(tmp_path)

    reply = asyncio.run(pipeline.handle(_command("zzznotreal")))

    assert "could not find" in reply.lower()
    assert transport.sent == [("!room:example.org", reply)]
    assert list(tmp_path.iterdir()) == []
    assert content.calls == []
    assert provider.calls == []
    assert pipeline.stats.failures == {"resolve": 1}


def test_empty_query_is_reported_as_not_found(tmp_path):
    pipeline, search, _content, _provider, transport, _store = _build(tmp_path)

    reply = asyncio.run(pipeline.handle(_command("")))

    assert reply.lower().startswith("could not find")
    assert search.calls == []
    assert len(transport.sent) == 1


def test_fetch_failure_replies_error_and_stores_nothing(tmp_path):
    content = _FakeContent(error=FetchError("Page 'Turing Award' does not exist"))
    pipeline, _search, _content, provider, transport, _store = _build(tmp_path, content=content)

    reply = asyncio.run(pipeline.handle(_command("turing award")))

    assert reply.startswith("Could not fetch")
    assert "does not exist" in reply
    assert provider.calls == []
    assert list(tmp_path.iterdir()) == []
    assert transport.sent == [("!room:example.org", reply)]


def test_generation_failure_replies_error_and_stores_nothing(tmp_path):
    provider = _FakeProvider(error=GenerationError("Provider returned no completion choices"))
    pipeline, _search, _content, _provider, transport, _store = _build(tmp_path, provider=provider)

    reply = asyncio.run(pipeline.handle(_command("turing award")))

    assert reply.startswith("Could not summarize")
    assert "no completion choices" in reply
    assert list(tmp_path.iterdir()) == []
    assert len(transport.sent) == 1


def test_write_failure_withholds_generated_text(tmp_path):
    class _ReadOnlyStore(SummaryStore):
        def write(self, title, text):  # noqa: ANN001
            raise StorageError(f"Cannot write {self.key_for(title)}: read-only")

    store = _ReadOnlyStore(tmp_path)
    pipeline, _search, _content, _provider, transport, _ = _build(tmp_path, store=store)

    reply = asyncio.run(pipeline.handle(_command("turing award")))

    assert reply.startswith("Could not access the summary cache")
    assert "The Turing Award is..." not in reply
    assert transport.sent == [("!room:example.org", reply)]
    assert pipeline.stats.failures == {"storage": 1}


def test_read_failure_replies_error(tmp_path):
    class _BrokenReadStore(SummaryStore):
        def has(self, title):  # noqa: ANN001
            return True

        def read(self, title):  # noqa: ANN001
            raise StorageError("Cannot read Turing Award.txt: permission denied")

    pipeline, _search, content, _provider, transport, _ = _build(
        tmp_path, store=_BrokenReadStore(tmp_path)
    )

    reply = asyncio.run(pipeline.handle(_command("turing award")))

    assert "permission denied" in reply
    assert content.calls == []
    assert len(transport.sent) == 1


def test_unexpected_exception_still_sends_one_reply(tmp_path):
    content = _FakeContent(error=KeyError("boom"))
    pipeline, _search, _content, _provider, transport, _store = _build(tmp_path, content=content)

    reply = asyncio.run(pipeline.handle(_command("turing award")))

    assert reply.startswith("Internal error")
    assert len(transport.sent) == 1
    assert pipeline.stats.failures == {"internal": 1}


def test_reply_failure_does_not_raise(tmp_path):
    transport = _FakeTransport(error=TransportError("homeserver unavailable"))
    pipeline, _search, _content, _provider, _transport, store = _build(tmp_path, transport=transport)

    reply = asyncio.run(pipeline.handle(_command("turing award")))

    assert reply == "The Turing Award is..."
    assert store.has("Turing Award")


def test_concurrent_distinct_commands_get_their_own_replies(tmp_path):
    titles = {"turing award": "Turing Award", "ada": "Ada Lovelace"}
    provider = _FakeProvider(
        {"Turing Award": "About the award.", "Ada Lovelace": "About Ada."}, delay=0.01
    )
    pipeline, _search, _content, _provider, transport, _store = _build(
        tmp_path, titles=titles, provider=provider
    )

    async def _run():
        return await asyncio.gather(
            pipeline.handle(_command("turing award", room="!one:example.org")),
            pipeline.handle(_command("ada", room="!two:example.org")),
        )

    replies = asyncio.run(_run())

    assert replies == ["About the award.", "About Ada."]
    assert sorted(transport.sent) == [
        ("!one:example.org", "About the award."),
        ("!two:example.org", "About Ada."),
    ]


# Concurrent identical queries: with single_flight the second command waits for
# the first and is served from the cache; without it both generate and the
# last write wins. Single-request behavior is the same in both modes.


def test_concurrent_identical_queries_generate_once_with_single_flight(tmp_path):
    content = _FakeContent(delay=0.01)
    pipeline, _search, _content, provider, transport, _store = _build(
        tmp_path, content=content, single_flight=True
    )

    async def _run():
        return await asyncio.gather(*(pipeline.handle(_command("turing award")) for _ in range(3)))

    replies = asyncio.run(_run())

    assert replies == ["The Turing Award is..."] * 3
    assert len(content.calls) == 1
    assert len(provider.calls) == 1
    assert pipeline.stats.generated == 1
    assert pipeline.stats.cache_hits == 2
    assert len(transport.sent) == 3


def test_concurrent_identical_queries_race_without_single_flight(tmp_path):
    content = _FakeContent(delay=0.01)
    pipeline, _search, _content, provider, _transport, store = _build(
        tmp_path, content=content, single_flight=False
    )

    async def _run():
        return await asyncio.gather(*(pipeline.handle(_command("turing award")) for _ in range(2)))

    replies = asyncio.run(_run())

    assert replies == ["The Turing Award is..."] * 2
    assert len(content.calls) == 2
    assert len(provider.calls) == 2
    assert pipeline.stats.generated == 2
    assert store.read("Turing Award") == "The Turing Award is..."


def test_format_failure_names_stage():
    assert format_failure("x", FetchError("gone")).startswith("Could not fetch")
    assert format_failure("x", GenerationError("empty")).startswith("Could not summarize")
    assert format_failure("x", StorageError("disk")).startswith("Could not access the summary cache")
    assert format_failure("x", RuntimeError("bug")) == "Internal error while handling 'x': RuntimeError"


def test_overlong_title_is_reported_as_storage_failure(tmp_path):
    pipeline, _search, content, _provider, transport, _store = _build(
        tmp_path, titles={"long": "A" * 300}
    )

    reply = asyncio.run(pipeline.handle(_command("long")))

    assert reply.startswith("Could not access the summary cache for 'long'")
    assert "Cannot check" in reply
    assert content.calls == []
    assert transport.sent == [("!room:example.org", reply)]
    assert pipeline.stats.failures == {"storage": 1}
