"""Domain exception hierarchy for the repository chat client."""

from __future__ import annotations


class RepoChatError(RuntimeError):
    """Base class for all domain-level errors."""


class ConfigurationError(RepoChatError):
    """Raised when credentials or settings are missing or invalid."""


class TransportError(RepoChatError):
    """Raised when a remote endpoint cannot be reached or answers with 5xx."""


class ProviderError(RepoChatError):
    """Raised when an AI provider rejects a request or returns a malformed payload."""


class RepositoryError(RepoChatError):
    """Raised when the remote file store rejects an operation."""


class NotFoundError(RepositoryError):
    """Raised when a repository path does not exist."""


class AlreadyExistsError(RepositoryError):
    """Raised when creating a path that the store already holds."""


class ConflictError(RepositoryError):
    """Raised when the store rejects a write because the revision id is stale."""


class ValidationError(RepoChatError):
    """Raised when extracted code fails the content heuristic."""


class PersistenceError(RepoChatError):
    """Raised when the message store is unavailable."""
