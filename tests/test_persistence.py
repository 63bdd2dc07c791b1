"""Tests for message persistence backends."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import os
from pathlib import Path
import tempfile
import unittest

from repochat.models import Message, Role
from repochat.persistence import (
    InMemoryMessagePersistence,
    MessagePersistence,
    SQLiteMessagePersistence,
    build_persistence,
)


class _BackendContract:
    """Behavior shared by every backend; mixed into concrete test cases."""

    def make_store(self) -> MessagePersistence:
        raise NotImplementedError

    async def test_append_returns_increasing_ids_and_loads_in_order(self) -> None:
        store = self.make_store()
        first = await store.append(Message(text="hello", role=Role.USER), "Echo")
        second = await store.append(Message(text="hi", role=Role.ASSISTANT), "Echo")
        self.assertLess(int(first), int(second))

        loaded = await store.load_all()
        self.assertEqual([m.text for m in loaded], ["hello", "hi"])
        self.assertEqual([m.role for m in loaded], [Role.USER, Role.ASSISTANT])
        self.assertEqual([m.id for m in loaded], [first, second])
        self.assertEqual(await store.count(), 2)
        await store.close()

    async def test_clear_then_load_is_empty(self) -> None:
        store = self.make_store()
        await store.append(Message(text="x", role=Role.SYSTEM), "Echo")
        await store.clear()
        self.assertEqual(await store.load_all(), [])
        self.assertEqual(await store.count(), 0)
        await store.close()

    async def test_delete_older_than_removes_only_old_messages(self) -> None:
        store = self.make_store()
        now = datetime.now(UTC)
        await store.append(
            Message(text="old", role=Role.USER, created_at=now - timedelta(days=10)),
            "Echo",
        )
        await store.append(Message(text="new", role=Role.USER, created_at=now), "Echo")

        removed = await store.delete_older_than(now - timedelta(days=1))
        self.assertEqual(removed, 1)
        self.assertEqual([m.text for m in await store.load_all()], ["new"])
        await store.close()


class InMemoryPersistenceTests(_BackendContract, unittest.IsolatedAsyncioTestCase):
    def make_store(self) -> MessagePersistence:
        return InMemoryMessagePersistence()


class SQLitePersistenceTests(_BackendContract, unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.database_path = Path(self._temp_dir.name) / "data" / "messages.db"

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def make_store(self) -> MessagePersistence:
        return SQLiteMessagePersistence(self.database_path)

    async def test_messages_survive_reopen(self) -> None:
        store = SQLiteMessagePersistence(self.database_path)
        await store.append(Message(text="persisted", role=Role.USER), "Echo")
        await store.close()

        reopened = SQLiteMessagePersistence(self.database_path)
        loaded = await reopened.load_all()
        self.assertEqual([m.text for m in loaded], ["persisted"])
        self.assertEqual(loaded[0].created_at.tzinfo, UTC)
        await reopened.close()

    @unittest.skipUnless(os.name == "posix", "POSIX permissions only")
    async def test_database_file_is_private(self) -> None:
        store = SQLiteMessagePersistence(self.database_path)
        await store.count()
        self.assertEqual(self.database_path.stat().st_mode & 0o777, 0o600)
        await store.close()


class BuildPersistenceTests(unittest.TestCase):
    def test_selects_backend_from_config(self) -> None:
        self.assertIsInstance(
            build_persistence({"backend": "memory"}), InMemoryMessagePersistence
        )
        sqlite_store = build_persistence(
            {"backend": "sqlite", "database_path": ":memory:"}
        )
        self.assertIsInstance(sqlite_store, SQLiteMessagePersistence)
        self.assertIsInstance(sqlite_store, MessagePersistence)


if __name__ == "__main__":
    unittest.main()
