"""Configuration loading and validation for the repository chat client."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import tomllib
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as SchemaValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "repochat"
CONFIG_PATH = CONFIG_DIR / "config.toml"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
PROVIDER_KINDS = {"echo", "ollama", "claude", "grok"}
PERSISTENCE_BACKENDS = {"sqlite", "memory"}


def _require_http_url(value: str, field_name: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme.lower() not in {"http", "https"}:
        raise ValueError(f"{field_name} must use http or https scheme.")
    if not (parsed.hostname or "").strip():
        raise ValueError(f"{field_name} must include a hostname.")
    return value.rstrip("/")


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "RepoChat"

    @field_validator("title", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("String value must not be empty.")
        return normalized


class ProviderConfig(BaseModel):
    """AI backend selection and per-provider endpoints."""

    kind: str = "echo"
    timeout: int = Field(default=120, ge=1, le=3600)
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    claude_base_url: str = "https://api.anthropic.com"
    claude_model: str = "claude-3-5-sonnet-20241022"
    grok_base_url: str = "https://api.x.ai"
    grok_model: str = "grok-3"

    @field_validator("kind", mode="before")
    @classmethod
    def _validate_kind(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("provider.kind must be a string.")
        normalized = value.strip().lower()
        if normalized not in PROVIDER_KINDS:
            raise ValueError(f"Unsupported provider {normalized!r}.")
        return normalized

    @field_validator("ollama_model", "claude_model", "grok_model", mode="before")
    @classmethod
    def _validate_model(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Model names must be non-empty strings.")
        return value.strip()

    @model_validator(mode="after")
    def _validate_urls(self) -> ProviderConfig:
        self.ollama_host = _require_http_url(self.ollama_host, "provider.ollama_host")
        self.claude_base_url = _require_http_url(
            self.claude_base_url, "provider.claude_base_url"
        )
        self.grok_base_url = _require_http_url(
            self.grok_base_url, "provider.grok_base_url"
        )
        return self


class RepositoryConfig(BaseModel):
    """Remote repository coordinates and client limits.

    ``owner`` and ``name`` may be left empty here and supplied through the
    secret store instead.
    """

    owner: str = ""
    name: str = ""
    branch: str = "main"
    api_url: str = "https://api.github.com"
    timeout: int = Field(default=30, ge=1, le=600)
    structure_max_depth: int = Field(default=3, ge=1, le=20)
    user_agent: str = "RepoChat"

    @field_validator("owner", "name", mode="before")
    @classmethod
    def _normalize_coordinate(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("Repository coordinates must be strings.")
        return value.strip()

    @field_validator("branch", "user_agent", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("String value must not be empty.")
        return normalized

    @model_validator(mode="after")
    def _validate_api_url(self) -> RepositoryConfig:
        self.api_url = _require_http_url(self.api_url, "repository.api_url")
        return self


class ConversationConfig(BaseModel):
    """Routing and context-window settings for the orchestrator."""

    command_prefix: str = "/"
    context_window_messages: int = Field(default=16, ge=1, le=1000)
    max_context_tokens: int = Field(default=8000, ge=128, le=1_000_000)
    recent_commits_limit: int = Field(default=5, ge=1, le=100)

    @field_validator("command_prefix", mode="before")
    @classmethod
    def _validate_prefix(cls, value: Any) -> str:
        if not isinstance(value, str) or len(value) != 1 or value.isspace():
            raise ValueError("command_prefix must be a single visible character.")
        return value


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/repochat/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("log_file_path must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("log_file_path must not be empty.")
        return normalized


class PersistenceConfig(BaseModel):
    """Message store selection and retention."""

    backend: str = "sqlite"
    database_path: str = "~/.local/share/repochat/conversations.db"
    retention_days: int = Field(default=0, ge=0, le=36_500)

    @field_validator("backend", mode="before")
    @classmethod
    def _validate_backend(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("persistence.backend must be a string.")
        normalized = value.strip().lower()
        if normalized not in PERSISTENCE_BACKENDS:
            raise ValueError(f"Unsupported persistence backend {normalized!r}.")
        return normalized

    @field_validator("database_path", mode="before")
    @classmethod
    def _validate_path_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Path value must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("Path value must not be empty.")
        return normalized


class SecretsConfig(BaseModel):
    """Location of the credential store."""

    path: str = "~/.config/repochat/secrets.json"

    @field_validator("path", mode="before")
    @classmethod
    def _validate_path_string(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("secrets.path must be a non-empty string.")
        return value.strip()


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    provider: ProviderConfig = ProviderConfig()
    repository: RepositoryConfig = RepositoryConfig()
    conversation: ConversationConfig = ConversationConfig()
    logging: LoggingConfig = LoggingConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    secrets: SecretsConfig = SecretsConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump(by_alias=True)


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _safe_default_config() -> dict[str, dict[str, Any]]:
    """Return a deep copy of validated default config data."""
    return deepcopy(DEFAULT_CONFIG)


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump(by_alias=True)
    except SchemaValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigurationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (
            Exception
        ) as exc:  # noqa: BLE001 - we must not crash on invalid user config.
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = (
        _deep_merge(DEFAULT_CONFIG, raw_data)
        if isinstance(raw_data, dict)
        else _safe_default_config()
    )
    return _validate_config(merged)
