"""Tests for conversation state."""

from __future__ import annotations

import unittest

from repochat.message_store import MessageStore
from repochat.models import Message, Role
from repochat.state import ConversationState


class ConversationStateTests(unittest.TestCase):
    def test_defaults(self) -> None:
        state = ConversationState()
        self.assertEqual(state.messages, [])
        self.assertFalse(state.history_loaded)
        self.assertFalse(state.is_busy)
        self.assertIsNone(state.last_error)

    def test_reset_clears_messages_and_error(self) -> None:
        state = ConversationState(store=MessageStore(context_window_messages=4))
        state.store.append(Message("hello", Role.USER))
        state.last_error = "boom"
        state.history_loaded = True

        state.reset()

        self.assertEqual(state.messages, [])
        self.assertIsNone(state.last_error)
        self.assertTrue(state.history_loaded)


if __name__ == "__main__":
    unittest.main()
