"""
Chat transports and reply delivery.

This package adapts chat networks to the transport-neutral ChatEvent
stream consumed by the dispatcher.
"""

from .base import ChatTransport
from .console import ConsoleTransport
from .matrix import MatrixTransport, parse_sync_events
from .reply import ReplyChannel

__all__ = [
    "ChatTransport",
    "ConsoleTransport",
    "MatrixTransport",
    "ReplyChannel",
    "parse_sync_events",
]
