"""Top-level package for RepoChat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import ChatApplication
    from .config import ensure_config_dir, load_config
    from .exceptions import (
        AlreadyExistsError,
        ConfigurationError,
        ConflictError,
        NotFoundError,
        PersistenceError,
        ProviderError,
        RepoChatError,
        RepositoryError,
        TransportError,
        ValidationError,
    )
    from .message_store import MessageStore
    from .orchestrator import ConversationOrchestrator
    from .persistence import InMemoryMessagePersistence, SQLiteMessagePersistence
    from .repository import RepositoryClient
    from .state import ConversationState

__all__ = [
    "AlreadyExistsError",
    "ChatApplication",
    "ConfigurationError",
    "ConflictError",
    "ConversationOrchestrator",
    "ConversationState",
    "InMemoryMessagePersistence",
    "MessageStore",
    "NotFoundError",
    "PersistenceError",
    "ProviderError",
    "RepoChatError",
    "RepositoryClient",
    "RepositoryError",
    "SQLiteMessagePersistence",
    "TransportError",
    "ValidationError",
    "ensure_config_dir",
    "load_config",
]

_EXCEPTION_NAMES = {
    "AlreadyExistsError",
    "ConfigurationError",
    "ConflictError",
    "NotFoundError",
    "PersistenceError",
    "ProviderError",
    "RepoChatError",
    "RepositoryError",
    "TransportError",
    "ValidationError",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so ``import repochat`` stays cheap."""
    if name == "ChatApplication":
        from .app import ChatApplication

        return ChatApplication
    if name == "ConversationOrchestrator":
        from .orchestrator import ConversationOrchestrator

        return ConversationOrchestrator
    if name in {"ensure_config_dir", "load_config"}:
        from .config import ensure_config_dir, load_config

        return {"ensure_config_dir": ensure_config_dir, "load_config": load_config}[name]
    if name in _EXCEPTION_NAMES:
        from . import exceptions

        return getattr(exceptions, name)
    if name == "ConversationState":
        from .state import ConversationState

        return ConversationState
    if name == "MessageStore":
        from .message_store import MessageStore

        return MessageStore
    if name in {"InMemoryMessagePersistence", "SQLiteMessagePersistence"}:
        from . import persistence

        return getattr(persistence, name)
    if name == "RepositoryClient":
        from .repository import RepositoryClient

        return RepositoryClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
