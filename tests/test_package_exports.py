"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import repochat


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_lazy_exports_resolve_known_symbols(self) -> None:
        self.assertTrue(callable(repochat.load_config))
        self.assertTrue(callable(repochat.ensure_config_dir))
        for name in repochat.__all__:
            self.assertIsNotNone(getattr(repochat, name), name)
        self.assertTrue(issubclass(repochat.ConflictError, repochat.RepositoryError))

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(repochat, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()
