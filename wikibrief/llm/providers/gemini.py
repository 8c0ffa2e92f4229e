"""Google Gemini provider using the generateContent REST endpoint."""

from __future__ import annotations

from typing import Any

import httpx

from ...config import ProviderConfig
from ...core.errors import ConfigError, GenerationError
from ...logging_utils import get_logger, log_event, truncate_text
from ...tracing import record_span_error, set_span_output, start_span
from .base import CompletionProvider


class GeminiProvider(CompletionProvider):
    """Gemini-backed provider; the system prompt goes in systemInstruction."""

    name = "gemini"
    default_base_url = "https://generativelanguage.googleapis.com"

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise ConfigError(f"Missing Google API key (set provider.api_key or {cfg.api_key_env})")
        self.cfg = cfg
        self.api_key = api_key
        self.base_url = cfg.base_url or self.default_base_url
        self.logger = get_logger("llm")
        self._client = client or httpx.AsyncClient(
            timeout=cfg.timeout_seconds,
            trust_env=cfg.trust_env,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def complete(self, system_prompt: str, user_content: str, model: str) -> str:
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_content}]}],
        }
        with start_span(
            "gemini.generate_content",
            kind="llm",
            input_value=user_content,
            attributes={"llm.model": model, "llm.provider": self.name},
        ) as span:
            try:
                data = await self._post(model, payload)
            except httpx.HTTPError as exc:
                record_span_error(span, exc)
                self._log_response(model, "provider_error", str(exc))
                raise GenerationError(f"{type(exc).__name__}: {exc}") from exc
            except ValueError as exc:
                record_span_error(span, exc)
                self._log_response(model, "parse_error", str(exc))
                raise GenerationError(f"Provider returned a non-JSON response: {exc}") from exc

            content = _extract_text(data)
            if content is None:
                err = GenerationError("Provider returned no candidates")
                record_span_error(span, err)
                self._log_response(model, "empty_response", "")
                raise err
            set_span_output(span, content)
            self._log_response(model, "ok", content)
            return content

    async def _post(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url.rstrip('/')}/v1beta/models/{model}:generateContent"
        params = {"key": self.api_key}
        resp = await self._client.post(url, params=params, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("response was not a JSON object")
        return data

    def _log_response(self, model: str, status: str, content: str) -> None:
        log_event(
            self.logger,
            "LLM response",
            event="llm_response",
            provider=self.name,
            model=model,
            status=status,
            raw_response=truncate_text(content, 2000),
        )


def _extract_text(data: dict[str, Any]) -> str | None:
    """Return the text of the first candidate, skipping thought parts.

    Returns None when the response has no candidate with text parts.
    """
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    try:
        parts = candidates[0]["content"]["parts"]
    except (KeyError, TypeError):
        return None

    if not isinstance(parts, list):
        return None

    non_thought_chunks: list[str] = []
    all_chunks: list[str] = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        text = part.get("text")
        if text is None:
            continue
        chunk = str(text)
        if not chunk:
            continue
        all_chunks.append(chunk)
        if not bool(part.get("thought")):
            non_thought_chunks.append(chunk)

    if non_thought_chunks:
        return "".join(non_thought_chunks)
    if all_chunks:
        return "".join(all_chunks)
    return None
