"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from repochat.exceptions import (
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


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        for exc_type in (
            ConfigurationError,
            TransportError,
            ProviderError,
            RepositoryError,
            ValidationError,
            PersistenceError,
        ):
            self.assertTrue(issubclass(exc_type, RepoChatError))

    def test_repository_errors_share_a_parent(self) -> None:
        self.assertTrue(issubclass(NotFoundError, RepositoryError))
        self.assertTrue(issubclass(AlreadyExistsError, RepositoryError))
        self.assertTrue(issubclass(ConflictError, RepositoryError))
        self.assertFalse(issubclass(TransportError, RepositoryError))


if __name__ == "__main__":
    unittest.main()
