"""Ordered conversation log and deterministic context-window construction."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import dataclasses

from .models import Message


class MessageStore:
    """Hold the conversation log in creation order and cut context windows from it."""

    def __init__(
        self,
        context_window_messages: int = 16,
        max_context_tokens: int = 8000,
    ) -> None:
        self.context_window_messages = max(1, context_window_messages)
        self.max_context_tokens = max(1, max_context_tokens)
        self._messages: list[Message] = []

    @property
    def messages(self) -> list[Message]:
        """Return a shallow copy of the log."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def clear(self) -> None:
        self._messages = []

    def append(self, message: Message) -> int:
        """Append a message and return its index in the log."""
        self._messages.append(message)
        return len(self._messages) - 1

    def assign_id(self, index: int, message_id: str) -> None:
        """Record the id handed out by the persistence store for an appended message."""
        current = self._messages[index]
        self._messages[index] = dataclasses.replace(current, id=message_id)

    def replace_messages(self, messages: Iterable[Message]) -> None:
        """Replace history from persisted data, keeping the store's order."""
        self._messages = [m for m in messages if isinstance(m, Message)]

    @staticmethod
    def estimate_tokens(message: Message) -> int:
        """Estimate token cost for a single message from role/content."""
        content = message.text
        return 2 + len(content) // 4 + len(content.split()) + 2

    def build_context(
        self,
        preamble: Sequence[Message] = (),
        window: int | None = None,
        max_context_tokens: int | None = None,
    ) -> list[Message]:
        """Return the newest ``window`` messages in chronological order.

        ``preamble`` messages are placed first and always kept. The tail is then
        trimmed from its oldest end until it fits the token budget, but the
        newest message is never dropped.
        """
        size = max(1, window or self.context_window_messages)
        limit = max(1, max_context_tokens or self.max_context_tokens)
        tail = self._messages[-size:]

        budget = max(0, limit - sum(self.estimate_tokens(m) for m in preamble))
        kept_start = len(tail)
        cumulative = 0
        for i in range(len(tail) - 1, -1, -1):
            cost = self.estimate_tokens(tail[i])
            if cumulative + cost > budget and kept_start < len(tail):
                break
            cumulative += cost
            kept_start = i

        return list(preamble) + tail[kept_start:]

