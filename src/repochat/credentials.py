"""Credential storage for provider keys and repository coordinates."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Protocol

LOGGER = logging.getLogger(__name__)

CLAUDE_API_KEY = "claude_api_key"
GROK_API_KEY = "grok_api_key"
LAST_ADAPTER = "last_adapter_type"
GITHUB_OWNER = "github_owner"
GITHUB_REPO = "github_repo"
GITHUB_TOKEN = "github_token"

KNOWN_KEYS = (
    CLAUDE_API_KEY,
    GROK_API_KEY,
    LAST_ADAPTER,
    GITHUB_OWNER,
    GITHUB_REPO,
    GITHUB_TOKEN,
)

# Environment variables consulted when the store has no value for a key.
ENV_FALLBACKS = {
    CLAUDE_API_KEY: "ANTHROPIC_API_KEY",
    GROK_API_KEY: "XAI_API_KEY",
    GITHUB_TOKEN: "GITHUB_TOKEN",
}


class SecretStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class InMemorySecretStore:
    """Process-local secret store used by tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()


class FileSecretStore:
    """JSON-file secret store kept private to the current user."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _enforce_permissions(self, path: Path, mode: int) -> None:
        if os.name != "posix" or not path.exists():
            return
        try:
            path.chmod(mode)
        except OSError as exc:
            LOGGER.warning(
                "Unable to enforce %o permissions for %s: %s", mode, path, exc
            )

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                "secrets.read_failed",
                extra={
                    "event": "secrets.read_failed",
                    "path": str(self.path),
                    "error": str(exc),
                },
            )
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(k): str(v) for k, v in payload.items() if isinstance(v, str)}

    def _write(self, values: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._enforce_permissions(self.path.parent, 0o700)
        self.path.write_text(
            json.dumps(values, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        self._enforce_permissions(self.path, 0o600)

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        values = self._read()
        values[key] = value
        self._write(values)

    def delete(self, key: str) -> None:
        values = self._read()
        if values.pop(key, None) is not None:
            self._write(values)

    def clear(self) -> None:
        if self.path.exists():
            self._write({})


def resolve_secret(store: SecretStore, key: str) -> str | None:
    """Return a non-blank secret from the store, or its environment fallback."""
    value = store.get(key)
    if value and value.strip():
        return value.strip()
    env_name = ENV_FALLBACKS.get(key)
    if env_name:
        env_value = os.environ.get(env_name, "").strip()
        if env_value:
            return env_value
    return None


@dataclass(frozen=True)
class RepositoryCoordinates:
    owner: str
    name: str
    token: str | None = None

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"


def resolve_repository(
    store: SecretStore, repository_config: dict[str, object]
) -> RepositoryCoordinates | None:
    """Combine stored and configured repository coordinates.

    Stored values take precedence; ``None`` means no repository is configured.
    """
    owner = resolve_secret(store, GITHUB_OWNER) or str(
        repository_config.get("owner") or ""
    ).strip()
    name = resolve_secret(store, GITHUB_REPO) or str(
        repository_config.get("name") or ""
    ).strip()
    if not owner or not name:
        return None
    return RepositoryCoordinates(
        owner=owner, name=name, token=resolve_secret(store, GITHUB_TOKEN)
    )
