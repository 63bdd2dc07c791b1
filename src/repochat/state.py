"""Conversation state owned by the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field

from .message_store import MessageStore
from .models import Message


@dataclass
class ConversationState:
    """Mutable state of the single conversation a running application hosts.

    One instance exists per :class:`~repochat.app.ChatApplication`; it is built
    when the application starts and dropped when it closes. Only the
    orchestrator's turn logic mutates it.
    """

    store: MessageStore = field(default_factory=MessageStore)
    history_loaded: bool = False
    last_error: str | None = None
    is_busy: bool = False

    @property
    def messages(self) -> list[Message]:
        return self.store.messages

    def reset(self) -> None:
        self.store.clear()
        self.last_error = None
