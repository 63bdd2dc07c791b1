"""Value objects shared by the orchestrator, providers and repository client."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class Role(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Message:
    """A single immutable entry in the conversation log.

    ``id`` stays ``None`` until the persistence store has accepted the message.
    """

    text: str
    role: Role
    created_at: datetime = field(default_factory=_utcnow)
    id: str | None = None


@dataclass(frozen=True)
class ChatTurn:
    """Provider-facing view of a message."""

    content: str
    role: str
    timestamp: datetime

    @classmethod
    def from_message(cls, message: Message) -> ChatTurn:
        return cls(
            content=message.text,
            role=message.role.value,
            timestamp=message.created_at,
        )


@dataclass(frozen=True)
class RepositoryFile:
    """Read-only snapshot of a directory entry in the remote store."""

    path: str
    name: str
    is_directory: bool
    size: int = 0
    revision_id: str | None = None


@dataclass(frozen=True)
class FileSnapshot:
    """File content together with the revision it was read at."""

    path: str
    content: str
    revision_id: str


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a successful create/update/delete."""

    new_revision_id: str
    commit_message: str
    commit_id: str | None = None
    view_url: str | None = None


@dataclass(frozen=True)
class Changeset:
    """One entry from the repository's recent history."""

    summary: str
    author: str
    id: str
    url: str | None = None

    @property
    def short_id(self) -> str:
        return self.id[:7]
