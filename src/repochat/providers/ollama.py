"""Local Ollama provider built on the official async SDK."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from typing import Any

import httpx
from ollama import AsyncClient as _AsyncClient, ResponseError

from ..exceptions import ConfigurationError, ProviderError, TransportError
from ..models import ChatTurn

LOGGER = logging.getLogger(__name__)


class OllamaProvider:
    """Non-streaming chat against an Ollama host."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.2",
        timeout: int = 120,
        client: Any | None = None,
    ) -> None:
        self.host = host
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return f"Ollama ({self.model})"

    @property
    def is_available(self) -> bool:
        return bool(self.host.strip() and self.model.strip())

    async def initialize(self, config: Mapping[str, Any] | None = None) -> None:
        overrides = dict(config or {})
        if overrides.get("host"):
            self.host = str(overrides["host"]).strip()
        if overrides.get("model"):
            self.model = str(overrides["model"]).strip()
        if not self.is_available:
            raise ConfigurationError("Ollama host and model must be configured.")
        if self._client is None:
            self._client = _AsyncClient(host=self.host, timeout=self.timeout)
        LOGGER.info(
            "provider.ollama.ready",
            extra={"event": "provider.ollama.ready", "model": self.model},
        )

    @staticmethod
    def _extract_content(response: Any) -> str | None:
        """Read message.content from an SDK object or a plain dict."""
        message = getattr(response, "message", None)
        if message is None and isinstance(response, dict):
            message = response.get("message")
        if message is None:
            return None
        content = getattr(message, "content", None)
        if content is None and isinstance(message, dict):
            content = message.get("content")
        return content if isinstance(content, str) else None

    def _map_exception(self, exc: Exception) -> Exception:
        if isinstance(exc, (ProviderError, TransportError)):
            return exc
        if isinstance(exc, (httpx.TransportError, ConnectionError)):
            return TransportError(f"Unable to connect to Ollama host {self.host}.")
        if isinstance(exc, ResponseError):
            lower_message = str(exc).lower()
            if "model" in lower_message and "not found" in lower_message:
                return ProviderError(
                    f"Model {self.model!r} was not found on {self.host}."
                )
            return ProviderError(f"Ollama API error: {exc}")
        return ProviderError(f"Ollama request failed at {self.host}: {exc}")

    async def converse(self, history: Sequence[ChatTurn]) -> str:
        if self._client is None:
            await self.initialize()
        messages = [{"role": turn.role, "content": turn.content} for turn in history]
        try:
            response = await self._client.chat(
                model=self.model, messages=messages, stream=False
            )
        except Exception as exc:
            raise self._map_exception(exc) from exc
        content = self._extract_content(response)
        if content is None:
            raise ProviderError("Ollama response is missing message content.")
        return content

    async def dispose(self) -> None:
        self._client = None
