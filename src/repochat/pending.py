"""Per-path tracking of file operations waiting for AI-supplied content."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
import logging

LOGGER = logging.getLogger(__name__)


class PendingKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class PendingOperation:
    """An intent to write ``path`` once the next usable AI reply arrives.

    Update intents carry the content and revision id captured when the edit
    was requested so the model edits from a known baseline.
    """

    path: str
    kind: PendingKind
    prior_content: str | None = None
    prior_revision_id: str | None = None

    @property
    def is_update(self) -> bool:
        return self.kind is PendingKind.UPDATE


class PendingOperationTracker:
    """Keyed store of pending operations; the last intent for a path wins."""

    def __init__(self) -> None:
        self._operations: dict[str, PendingOperation] = {}

    def set_create(self, path: str) -> PendingOperation:
        return self._put(PendingOperation(path=path, kind=PendingKind.CREATE))

    def set_update(
        self, path: str, prior_content: str, prior_revision_id: str
    ) -> PendingOperation:
        return self._put(
            PendingOperation(
                path=path,
                kind=PendingKind.UPDATE,
                prior_content=prior_content,
                prior_revision_id=prior_revision_id,
            )
        )

    def _put(self, operation: PendingOperation) -> PendingOperation:
        replaced = self._operations.pop(operation.path, None)
        self._operations[operation.path] = operation
        LOGGER.debug(
            "pending.set",
            extra={
                "event": "pending.set",
                "path": operation.path,
                "kind": operation.kind.value,
                "replaced": replaced.kind.value if replaced else None,
            },
        )
        return operation

    def get(self, path: str) -> PendingOperation | None:
        return self._operations.get(path)

    def remove(self, path: str) -> bool:
        """Drop the entry for ``path``; return whether one existed."""
        return self._operations.pop(path, None) is not None

    def clear(self) -> None:
        self._operations.clear()

    def items(self) -> list[PendingOperation]:
        """Snapshot of pending operations in the order they were requested."""
        return list(self._operations.values())

    def paths(self) -> list[str]:
        return list(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def __contains__(self, path: object) -> bool:
        return path in self._operations

    def __iter__(self) -> Iterator[PendingOperation]:
        return iter(self.items())
