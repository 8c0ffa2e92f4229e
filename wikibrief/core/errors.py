"""
Error taxonomy for the command pipeline.

Each stage of the pipeline raises exactly one of the stage errors below.
Adapters translate transport and payload failures into these types so the
pipeline never sees ``httpx`` exceptions or raw provider payloads.
"""

from __future__ import annotations


class BotError(RuntimeError):
    """Base error for everything raised by wikibrief."""


class ResolutionError(BotError):
    """Raised when a query cannot be resolved to an article title."""


class NotFoundError(ResolutionError):
    """Raised when the search provider returns no candidates."""


class FetchError(BotError):
    """Raised when article content cannot be retrieved."""


class GenerationError(BotError):
    """Raised when the summarization call fails or returns nothing."""


class StorageError(BotError):
    """Raised on read/write failures against the summary cache."""


class TransportError(BotError):
    """Raised when the chat transport cannot connect, sync or send."""


class ConfigError(BotError):
    """Raised when configuration is missing or malformed."""
