"""
Core data types for the command pipeline.

This module defines the data structures passed between stages:
- ChatEvent: Transport-neutral inbound chat event
- Command: A chat message that matched the trigger prefix
- SummaryResult: Outcome of one successful lookup
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


PLAIN_TEXT = "m.text"

SummaryOrigin = Literal["cache", "generated"]


@dataclass(frozen=True)
class ChatEvent:
    """An inbound chat message as delivered by a transport.

    Attributes:
        sender: Identifier of the participant who sent the message
        room: Identifier of the conversation the message was sent in
        body: Message text
        type: Message type; only PLAIN_TEXT messages can carry commands
        event_id: Transport-specific event identifier, if any
    """
    sender: str
    room: str
    body: str
    type: str = PLAIN_TEXT
    event_id: str | None = None


@dataclass(frozen=True)
class Command:
    """A recognized command, owned by a single processing task.

    Attributes:
        origin_room: Room the reply must be sent to
        issuer: Participant who issued the command
        raw_text: Full message body as received
        query: Search phrase with the trigger prefix removed and whitespace trimmed
    """
    origin_room: str
    issuer: str
    raw_text: str
    query: str


@dataclass(frozen=True)
class SummaryResult:
    """Summary text for a resolved title.

    Attributes:
        title: Canonical article title
        text: Summary text exactly as stored or generated
        origin: "cache" when served from disk, "generated" when freshly produced
    """
    title: str
    text: str
    origin: SummaryOrigin
