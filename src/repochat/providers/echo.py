"""Deterministic offline provider for development and tests."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

from ..models import ChatTurn
from .base import last_user_content

CANNED_REPLIES = (
    "Hello! I'm the echo provider. How can I help you?",
    "That's an interesting question. Let me think about it...",
    "I understand. Here's my response to your message.",
    "Great! I'm processing your request.",
    "Thanks for trying RepoChat with the echo provider!",
)


class EchoProvider:
    """Cycle through canned replies; never fails."""

    def __init__(
        self,
        replies: Sequence[str] = CANNED_REPLIES,
        delay_seconds: float = 0.0,
    ) -> None:
        self._replies = tuple(replies) or CANNED_REPLIES
        self._delay_seconds = max(0.0, delay_seconds)
        self._index = 0

    @property
    def name(self) -> str:
        return "Echo"

    @property
    def is_available(self) -> bool:
        return True

    async def initialize(self, config: Mapping[str, Any] | None = None) -> None:
        self._index = 0

    async def converse(self, history: Sequence[ChatTurn]) -> str:
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)
        user_text = last_user_content(history) or "No message"
        reply = self._replies[self._index % len(self._replies)]
        self._index += 1
        return f'You said: "{user_text}"\n\n{reply}'

    async def dispose(self) -> None:
        return None
