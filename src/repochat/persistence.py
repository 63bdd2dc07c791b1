"""Message persistence backends behind a single append/load contract."""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime
import itertools
import logging
import os
from pathlib import Path
import sqlite3
from typing import Any, Protocol, runtime_checkable

import aiosqlite

from .exceptions import PersistenceError
from .models import Message, Role

LOGGER = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    text TEXT NOT NULL,
    role TEXT NOT NULL,
    created_at REAL NOT NULL,
    provider TEXT NOT NULL
)
"""


@runtime_checkable
class MessagePersistence(Protocol):
    """Passive sink/source for conversation messages, in insertion order."""

    async def append(self, message: Message, provider_label: str) -> str: ...

    async def load_all(self) -> list[Message]: ...

    async def clear(self) -> None: ...

    async def count(self) -> int: ...

    async def delete_older_than(self, cutoff: datetime) -> int: ...

    async def close(self) -> None: ...


def _to_epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()


def _row_to_message(row: Any) -> Message:
    message_id, text, role, created_at = row
    try:
        parsed_role = Role(str(role))
    except ValueError:
        parsed_role = Role.SYSTEM
    return Message(
        id=str(message_id),
        text=str(text),
        role=parsed_role,
        created_at=datetime.fromtimestamp(float(created_at), tz=UTC),
    )


class InMemoryMessagePersistence:
    """Ephemeral store; contents vanish with the process."""

    def __init__(self) -> None:
        self._rows: list[tuple[Message, str]] = []
        self._ids = itertools.count(1)

    async def append(self, message: Message, provider_label: str) -> str:
        message_id = str(next(self._ids))
        self._rows.append((dataclasses.replace(message, id=message_id), provider_label))
        return message_id

    async def load_all(self) -> list[Message]:
        return [message for message, _ in self._rows]

    async def clear(self) -> None:
        self._rows.clear()

    async def count(self) -> int:
        return len(self._rows)

    async def delete_older_than(self, cutoff: datetime) -> int:
        threshold = _to_epoch(cutoff)
        before = len(self._rows)
        self._rows = [
            (message, label)
            for message, label in self._rows
            if _to_epoch(message.created_at) >= threshold
        ]
        return before - len(self._rows)

    async def close(self) -> None:
        return None


class SQLiteMessagePersistence:
    """Durable store backed by a single SQLite table."""

    def __init__(self, database_path: str | Path) -> None:
        raw = str(database_path)
        self.database_path = raw if raw == ":memory:" else str(Path(raw).expanduser())
        self._db: aiosqlite.Connection | None = None

    def _enforce_permissions(self, path: Path) -> None:
        """Set 0600 on the database file; silently ignores failures."""
        if os.name != "posix" or not path.exists():
            return
        try:
            path.chmod(0o600)
        except OSError:
            pass

    async def _connection(self) -> aiosqlite.Connection:
        if self._db is not None:
            return self._db
        try:
            if self.database_path != ":memory:":
                Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(self.database_path)
            await db.execute(_SCHEMA)
            await db.commit()
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceError(
                f"Unable to open message store at {self.database_path}: {exc}"
            ) from exc
        if self.database_path != ":memory:":
            self._enforce_permissions(Path(self.database_path))
        self._db = db
        return db

    async def append(self, message: Message, provider_label: str) -> str:
        db = await self._connection()
        try:
            cursor = await db.execute(
                "INSERT INTO messages(text, role, created_at, provider) VALUES(?,?,?,?)",
                (
                    message.text,
                    message.role.value,
                    _to_epoch(message.created_at),
                    provider_label,
                ),
            )
            await db.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to save message: {exc}") from exc
        return str(cursor.lastrowid)

    async def load_all(self) -> list[Message]:
        db = await self._connection()
        try:
            cursor = await db.execute(
                "SELECT id, text, role, created_at FROM messages ORDER BY id ASC"
            )
            rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to load messages: {exc}") from exc
        return [_row_to_message(row) for row in rows]

    async def clear(self) -> None:
        db = await self._connection()
        try:
            await db.execute("DELETE FROM messages")
            await db.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to clear messages: {exc}") from exc

    async def count(self) -> int:
        db = await self._connection()
        try:
            cursor = await db.execute("SELECT COUNT(*) FROM messages")
            row = await cursor.fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to count messages: {exc}") from exc
        return int(row[0]) if row else 0

    async def delete_older_than(self, cutoff: datetime) -> int:
        db = await self._connection()
        try:
            cursor = await db.execute(
                "DELETE FROM messages WHERE created_at < ?", (_to_epoch(cutoff),)
            )
            await db.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to delete old messages: {exc}") from exc
        removed = cursor.rowcount if cursor.rowcount is not None else 0
        LOGGER.info(
            "persistence.retention",
            extra={"event": "persistence.retention", "removed": removed},
        )
        return removed

    async def close(self) -> None:
        db, self._db = self._db, None
        if db is None:
            return
        try:
            await db.close()
        except sqlite3.Error as exc:
            LOGGER.warning(
                "persistence.close_failed",
                extra={"event": "persistence.close_failed", "error": str(exc)},
            )


def build_persistence(persistence_config: dict[str, Any]) -> MessagePersistence:
    """Select a backend from the ``persistence`` config section."""
    backend = str(persistence_config.get("backend", "sqlite")).lower()
    if backend == "memory":
        return InMemoryMessagePersistence()
    return SQLiteMessagePersistence(
        str(persistence_config.get("database_path", ":memory:"))
    )
