"""Tests for Langfuse tracing setup behavior."""

from __future__ import annotations

import sys
import types

import pytest

from wikibrief import tracing
from wikibrief.config import LangfuseConfig


@pytest.fixture(autouse=True)
def _reset_tracer():
    yield
    tracing.setup_langfuse(LangfuseConfig())


class _DummySpan:
    def __init__(self):
        self.updates: list[dict] = []

    def update(self, **kwargs):
        self.updates.append(kwargs)


class _DummySpanContext:
    def __init__(self, span):
        self.span = span

    def __enter__(self):
        return self.span

    def __exit__(self, *exc):
        return False


def _install_fake_langfuse(monkeypatch, captured: dict, span: _DummySpan) -> None:
    class DummyLangfuse:
        def __init__(self, **kwargs):
            captured["init"] = kwargs

        def start_as_current_span(self, **kwargs):
            captured.setdefault("spans", []).append(kwargs)
            return _DummySpanContext(span)

        def flush(self):
            captured["flushed"] = True

    monkeypatch.setitem(sys.modules, "langfuse", types.SimpleNamespace(Langfuse=DummyLangfuse))


def test_setup_langfuse_prefers_config_over_environment(monkeypatch):
    captured: dict = {}
    _install_fake_langfuse(monkeypatch, captured, _DummySpan())
    monkeypatch.setenv("LANGFUSE_PUBLIC_KEY", "pk-env")
    monkeypatch.setenv("LANGFUSE_SECRET_KEY", "sk-env")
    monkeypatch.setenv("LANGFUSE_HOST", "https://env.example.com")

    tracing.setup_langfuse(LangfuseConfig(enabled=True, public_key="pk-cfg"))

    assert captured["init"]["public_key"] == "pk-cfg"
    assert captured["init"]["secret_key"] == "sk-env"
    assert captured["init"]["host"] == "https://env.example.com"


def test_start_span_yields_none_when_disabled():
    tracing.setup_langfuse(LangfuseConfig(enabled=False))

    with tracing.start_span("command", kind="chain", input_value="turing") as span:
        assert span is None
    tracing.set_span_output(span, "ignored")
    tracing.record_span_error(span, RuntimeError("ignored"))
    tracing.flush()


def test_span_records_redacted_output_and_errors(monkeypatch):
    captured: dict = {}
    span = _DummySpan()
    _install_fake_langfuse(monkeypatch, captured, span)

    tracing.setup_langfuse(LangfuseConfig(enabled=True, redaction="redact_urls", max_text_chars=40))
    with tracing.start_span(
        "command",
        kind="chain",
        input_value="see https://en.wikipedia.org/wiki/Turing_Award",
        attributes={"room": "!a:example.org", "skip": None},
    ) as opened:
        tracing.set_span_output(opened, "x" * 100)
        tracing.record_span_error(opened, RuntimeError("boom"))
    tracing.flush()

    started = captured["spans"][0]
    assert started["input"] == "see [REDACTED_URL]"
    assert started["metadata"] == {"room": "!a:example.org", "span.kind": "chain"}
    assert span.updates[0]["output"] == "x" * 40 + "...(truncated)"
    assert span.updates[1] == {"level": "ERROR", "status_message": "boom"}
    assert captured["flushed"] is True
