"""Application context that wires configuration, secrets and services together."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
from pathlib import Path
from typing import Any

from .config import load_config
from .credentials import (
    LAST_ADAPTER,
    FileSecretStore,
    SecretStore,
    resolve_repository,
)
from .exceptions import ConfigurationError
from .models import Message, Role
from .orchestrator import ConversationOrchestrator
from .persistence import MessagePersistence, build_persistence
from .providers import AIProvider, build_provider
from .repository import RepositoryClient

LOGGER = logging.getLogger(__name__)

QUIT_COMMAND = "quit"
CLEAR_COMMAND = "clear"


def format_message(message: Message) -> str:
    label = {
        Role.USER: "you",
        Role.ASSISTANT: "ai",
        Role.SYSTEM: "system",
    }[message.role]
    return f"[{label}] {message.text}"


class ChatApplication:
    """Explicitly constructed context for one conversation.

    Collaborators can be injected; anything left out is built from the
    loaded configuration when :meth:`start` runs.
    """

    def __init__(
        self,
        config: dict[str, dict[str, Any]] | None = None,
        *,
        config_path: Path | None = None,
        provider_kind: str | None = None,
        secrets: SecretStore | None = None,
        persistence: MessagePersistence | None = None,
        provider: AIProvider | None = None,
        repository: RepositoryClient | None = None,
    ) -> None:
        self.config = config if config is not None else load_config(config_path)
        self.secrets = secrets or FileSecretStore(
            Path(self.config["secrets"]["path"]).expanduser()
        )
        self.persistence = persistence or build_persistence(self.config["persistence"])
        self._provider_kind = provider_kind
        self._provider = provider
        self._repository = repository
        self._orchestrator: ConversationOrchestrator | None = None

    @property
    def orchestrator(self) -> ConversationOrchestrator:
        if self._orchestrator is None:
            raise RuntimeError("ChatApplication.start() has not been called.")
        return self._orchestrator

    def _selected_provider_kind(self) -> str:
        if self._provider_kind:
            return self._provider_kind
        stored = self.secrets.get(LAST_ADAPTER)
        if stored and stored.strip():
            return stored.strip()
        return str(self.config["provider"]["kind"])

    def _build_repository(self) -> RepositoryClient | None:
        repo_cfg = self.config["repository"]
        coordinates = resolve_repository(self.secrets, repo_cfg)
        if coordinates is None:
            LOGGER.info(
                "app.repository.unconfigured",
                extra={"event": "app.repository.unconfigured"},
            )
            return None
        return RepositoryClient(
            owner=coordinates.owner,
            name=coordinates.name,
            token=coordinates.token,
            branch=str(repo_cfg["branch"]),
            api_url=str(repo_cfg["api_url"]),
            timeout=float(repo_cfg["timeout"]),
            user_agent=str(repo_cfg["user_agent"]),
        )

    async def start(self) -> ConversationOrchestrator:
        """Build the orchestrator, initialize the provider and load history."""
        if self._repository is None:
            self._repository = self._build_repository()
        orchestrator = ConversationOrchestrator.from_config(
            self.config, None, self.persistence, self._repository
        )
        self._orchestrator = orchestrator

        provider = self._provider
        if provider is None:
            kind = self._selected_provider_kind()
            try:
                provider = build_provider(kind, self.config["provider"], self.secrets)
            except ConfigurationError as exc:
                orchestrator.state.last_error = str(exc)
                LOGGER.warning(
                    "app.provider.unknown",
                    extra={"event": "app.provider.unknown", "error": str(exc)},
                )
        if provider is not None and await orchestrator.set_provider(provider):
            if self._provider is None:
                self.secrets.set(LAST_ADAPTER, self._selected_provider_kind())

        await orchestrator.load_history()
        return orchestrator

    async def close(self) -> None:
        if self._orchestrator is not None and self._orchestrator.provider is not None:
            await self._orchestrator.provider.dispose()
        if self._repository is not None:
            await self._repository.close()
        await self.persistence.close()
        self._orchestrator = None

    async def __aenter__(self) -> ChatApplication:
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def handle_line(self, line: str, output: Callable[[str], None]) -> bool:
        """Process one line of input; return ``False`` when the loop should stop."""
        orchestrator = self.orchestrator
        prefix = orchestrator.command_prefix
        stripped = line.strip()
        if stripped == f"{prefix}{QUIT_COMMAND}":
            return False
        if stripped == f"{prefix}{CLEAR_COMMAND}":
            await orchestrator.clear_conversation()
            output("Conversation cleared.")
            return True
        for message in await orchestrator.send_message(line):
            output(format_message(message))
        return True

    async def run_repl(self, output: Callable[[str], None] = print) -> None:
        """Read lines from stdin until ``/quit`` or EOF."""
        orchestrator = self.orchestrator
        if orchestrator.last_error:
            output(f"[system] {orchestrator.last_error}")
        for message in orchestrator.messages:
            output(format_message(message))
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if not await self.handle_line(line, output):
                break
