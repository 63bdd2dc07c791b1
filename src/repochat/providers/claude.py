"""Anthropic Messages API provider."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from ..exceptions import ConfigurationError, ProviderError
from ..models import ChatTurn
from .base import post_json

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4000


def to_claude_messages(history: Sequence[ChatTurn]) -> list[dict[str, str]]:
    """Convert history to the strictly alternating user/assistant form.

    System turns become user turns tagged ``[system]`` so command output stays
    in place, and consecutive turns with the same role are merged. A leading
    assistant turn is dropped because the API requires a user turn first.
    """
    converted: list[dict[str, str]] = []
    for turn in history:
        if turn.role == "assistant":
            role, content = "assistant", turn.content
        elif turn.role == "system":
            role, content = "user", f"[system]\n{turn.content}"
        else:
            role, content = "user", turn.content
        if converted and converted[-1]["role"] == role:
            converted[-1]["content"] += f"\n\n{content}"
        else:
            converted.append({"role": role, "content": content})
    while converted and converted[0]["role"] != "user":
        converted.pop(0)
    return converted


class ClaudeProvider:
    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-20241022",
        base_url: str = "https://api.anthropic.com",
        timeout: float = 120.0,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return f"Claude AI ({self.model})"

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
            raise ConfigurationError("Claude API key not configured.")
        self._http_client()

    def _http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def converse(self, history: Sequence[ChatTurn]) -> str:
        if not self.is_available:
            raise ConfigurationError("Claude API key not configured.")
        data = await post_json(
            self._http_client(),
            f"{self.base_url}/v1/messages",
            {
                "model": self.model,
                "max_tokens": self.max_tokens,
                "messages": to_claude_messages(history),
            },
            {
                "content-type": "application/json",
                "x-api-key": self._api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
            "Claude",
        )
        content = data.get("content")
        if not isinstance(content, list):
            raise ProviderError("Claude response is missing content.")
        texts = [
            str(block.get("text", ""))
            for block in content
            if isinstance(block, dict) and block.get("type", "text") == "text"
        ]
        if not texts:
            return "Empty response from Claude"
        return "".join(texts)

    async def dispose(self) -> None:
        client, self._client = self._client, None
        if client is not None and self._owns_client:
            await client.aclose()
