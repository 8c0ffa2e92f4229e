"""
Core data types, errors and storage.

This package contains the pieces shared by every pipeline stage.
"""

from .errors import (
    BotError,
    ConfigError,
    FetchError,
    GenerationError,
    NotFoundError,
    ResolutionError,
    StorageError,
    TransportError,
)
from .store import SummaryStore, sanitize_title
from .types import PLAIN_TEXT, ChatEvent, Command, SummaryResult

__all__ = [
    "BotError",
    "ConfigError",
    "FetchError",
    "GenerationError",
    "NotFoundError",
    "ResolutionError",
    "StorageError",
    "TransportError",
    "SummaryStore",
    "sanitize_title",
    "PLAIN_TEXT",
    "ChatEvent",
    "Command",
    "SummaryResult",
]
