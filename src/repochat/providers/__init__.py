"""AI provider implementations and factory."""

from __future__ import annotations

from typing import Any

from ..credentials import CLAUDE_API_KEY, GROK_API_KEY, SecretStore, resolve_secret
from ..exceptions import ConfigurationError
from .base import AIProvider
from .claude import ClaudeProvider
from .echo import EchoProvider
from .grok import GrokProvider
from .ollama import OllamaProvider

__all__ = [
    "AIProvider",
    "ClaudeProvider",
    "EchoProvider",
    "GrokProvider",
    "OllamaProvider",
    "build_provider",
]


def build_provider(
    kind: str, provider_config: dict[str, Any], secrets: SecretStore
) -> AIProvider:
    """Construct an uninitialized provider of ``kind`` from config and secrets."""
    normalized = kind.strip().lower()
    timeout = int(provider_config.get("timeout", 120))
    if normalized == "echo":
        return EchoProvider()
    if normalized == "ollama":
        return OllamaProvider(
            host=str(provider_config.get("ollama_host", "http://localhost:11434")),
            model=str(provider_config.get("ollama_model", "llama3.2")),
            timeout=timeout,
        )
    if normalized == "claude":
        return ClaudeProvider(
            api_key=resolve_secret(secrets, CLAUDE_API_KEY),
            model=str(
                provider_config.get("claude_model", "claude-3-5-sonnet-20241022")
            ),
            base_url=str(
                provider_config.get("claude_base_url", "https://api.anthropic.com")
            ),
            timeout=timeout,
        )
    if normalized == "grok":
        return GrokProvider(
            api_key=resolve_secret(secrets, GROK_API_KEY),
            model=str(provider_config.get("grok_model", "grok-3")),
            base_url=str(provider_config.get("grok_base_url", "https://api.x.ai")),
            timeout=timeout,
        )
    raise ConfigurationError(f"Unknown provider {kind!r}.")
