"""
Matrix chat transport over the client-server HTTP API.

Uses three endpoints:
1. GET  /account/whoami: credential check and own user id
2. GET  /sync: long-poll for new room events
3. PUT  /rooms/{roomId}/send/m.room.message/{txnId}: send a reply

Only ``m.room.message`` events from joined rooms are surfaced. The backlog
returned by the very first /sync is dropped by default so that commands
sent while the bot was offline are not replayed on startup.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator
from urllib.parse import quote
import uuid

import httpx

from ..config import MatrixConfig
from ..core.errors import ConfigError, TransportError
from ..core.types import ChatEvent
from ..logging_utils import get_logger, log_event
from .base import ChatTransport


_API_PREFIX = "/_matrix/client/v3"


class MatrixTransport(ChatTransport):
    """Matrix client using a pre-issued access token."""

    def __init__(
        self,
        cfg: MatrixConfig,
        access_token: str | None,
        client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ):
        if not access_token:
            raise ConfigError(
                f"Missing Matrix access token (set matrix.access_token or {cfg.access_token_env})"
            )
        self.cfg = cfg
        self.logger = logger or get_logger("matrix")
        self.user_id: str | None = None
        self._since: str | None = None
        self._client = client or httpx.AsyncClient(
            base_url=cfg.homeserver.rstrip("/") + _API_PREFIX,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=cfg.timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def connect(self) -> str:
        try:
            resp = await self._client.get("/account/whoami")
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TransportError(f"Cannot connect to {self.cfg.homeserver}: {exc}") from exc

        user_id = data.get("user_id") if isinstance(data, dict) else None
        if not user_id:
            raise TransportError("whoami response missing user_id")
        if self.cfg.user_id and self.cfg.user_id != user_id:
            raise TransportError(
                f"Access token belongs to {user_id}, not the configured {self.cfg.user_id}"
            )
        self.user_id = user_id
        log_event(self.logger, "Matrix connected", event="matrix_connected", user_id=user_id)
        return user_id

    async def events(self) -> AsyncIterator[ChatEvent]:
        first = True
        while True:
            try:
                data = await self._sync(initial=first)
            except TransportError as exc:
                log_event(
                    self.logger,
                    "Sync failed",
                    level=logging.WARNING,
                    event="sync_failed",
                    error=str(exc),
                    retry_in=self.cfg.retry_delay_seconds,
                )
                await asyncio.sleep(self.cfg.retry_delay_seconds)
                continue

            self._since = data.get("next_batch") or self._since
            if first and self.cfg.skip_initial_sync:
                first = False
                continue
            first = False
            for event in parse_sync_events(data):
                yield event

    async def send_text(self, room: str, text: str) -> None:
        txn_id = f"wikibrief-{uuid.uuid4().hex}"
        path = f"/rooms/{quote(room, safe='')}/send/m.room.message/{txn_id}"
        try:
            resp = await self._client.put(path, json={"msgtype": "m.text", "body": text})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(f"Send to {room} failed: {type(exc).__name__}: {exc}") from exc

    async def _sync(self, initial: bool) -> dict[str, Any]:
        # The first sync returns immediately with the current state
        timeout_ms = 0 if initial else self.cfg.sync_timeout_ms
        params: dict[str, Any] = {"timeout": timeout_ms}
        if self._since:
            params["since"] = self._since
        request_timeout = self.cfg.timeout_seconds + timeout_ms / 1000
        try:
            resp = await self._client.get("/sync", params=params, timeout=request_timeout)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        if not isinstance(data, dict):
            raise TransportError("sync response was not a JSON object")
        return data


def parse_sync_events(data: dict[str, Any]) -> list[ChatEvent]:
    """Extract message events from a /sync response, in timeline order."""
    joined = (data.get("rooms") or {}).get("join") or {}
    events: list[ChatEvent] = []
    for room_id, room in joined.items():
        timeline = (room or {}).get("timeline") or {}
        for raw in timeline.get("events") or []:
            if not isinstance(raw, dict) or raw.get("type") != "m.room.message":
                continue
            content = raw.get("content") or {}
            body = content.get("body")
            if not isinstance(body, str):
                continue
            events.append(
                ChatEvent(
                    sender=str(raw.get("sender", "")),
                    room=room_id,
                    body=body,
                    type=str(content.get("msgtype", "")),
                    event_id=raw.get("event_id"),
                )
            )
    return events
