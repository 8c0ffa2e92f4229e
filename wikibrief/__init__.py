"""
wikibrief - chat-triggered Wikipedia summary bot.

This package listens for "<command> <query>" messages in Matrix rooms,
resolves the query to a Wikipedia article, summarizes it with an LLM,
caches the summary on disk by article title and replies in the room.

Main entry point is the CLI via `wikibrief run` command.

Example:
    $ wikibrief run -c config.yaml
    $ wikibrief lookup "turing award"
"""

__all__ = [
    "__version__",
    "AppConfig",
    "load_config",
    "CommandDispatcher",
    "SummaryPipeline",
    "SummaryStore",
    "sanitize_title",
]
__version__ = "0.1.0"

from .config import AppConfig, load_config
from .core.store import SummaryStore, sanitize_title
from .dispatcher import CommandDispatcher
from .pipeline import SummaryPipeline
