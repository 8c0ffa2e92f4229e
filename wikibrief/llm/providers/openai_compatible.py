"""OpenAI-compatible chat completions provider."""

from __future__ import annotations

from typing import Any

import httpx

from ...config import ProviderConfig
from ...core.errors import ConfigError, GenerationError
from ...logging_utils import get_logger, log_event, truncate_text
from ...tracing import record_span_error, set_span_output, start_span
from .base import CompletionProvider


class OpenAICompatibleProvider(CompletionProvider):
    """Provider for any endpoint implementing POST /chat/completions."""

    name = "openai"
    default_base_url = "https://api.openai.com/v1"

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise ConfigError(f"Missing API key (set provider.api_key or {cfg.api_key_env})")
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
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }
        with start_span(
            "openai.chat_completion",
            kind="llm",
            input_value=user_content,
            attributes={"llm.model": model, "llm.provider": self.name},
        ) as span:
            try:
                data = await self._post(payload)
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
                err = GenerationError("Provider returned no completion choices")
                record_span_error(span, err)
                self._log_response(model, "empty_response", "")
                raise err
            set_span_output(span, content)
            self._log_response(model, "ok", content)
            return content

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        resp = await self._client.post(url, headers=headers, json=payload)
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
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str):
        return None
    return content
