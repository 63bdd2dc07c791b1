"""xAI Grok provider (OpenAI-compatible chat completions)."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from ..exceptions import ConfigurationError, ProviderError
from ..models import ChatTurn
from .base import post_json


class GrokProvider:
    def __init__(
        self,
        api_key: str | None = None,
        model: str = "grok-3",
        base_url: str = "https://api.x.ai",
        timeout: float = 120.0,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "Grok AI"

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    async def initialize(self, config: Mapping[str, Any] | None = None) -> None:
        overrides = dict(config or {})
        if overrides.get("api_key"):
            self._api_key = str(overrides["api_key"]).strip()
        if overrides.get("model"):
            self.model = str(overrides["model"]).strip()
        if not self.is_available:
            raise ConfigurationError("Grok API key not configured.")
        self._http_client()

    def _http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def converse(self, history: Sequence[ChatTurn]) -> str:
        if not self.is_available:
            raise ConfigurationError("Grok API key not configured.")
        data = await post_json(
            self._http_client(),
            f"{self.base_url}/v1/chat/completions",
            {
                "model": self.model,
                "messages": [
                    {"role": turn.role, "content": turn.content} for turn in history
                ],
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
            },
            {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            "Grok",
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("Grok response is missing choices.") from exc
        return str(content) if content else "No response from Grok"

    async def dispose(self) -> None:
        client, self._client = self._client, None
        if client is not None and self._owns_client:
            await client.aclose()
