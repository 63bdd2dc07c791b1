"""Tests for the conversation log and context-window trimming."""

from __future__ import annotations

import unittest

from repochat.message_store import MessageStore
from repochat.models import Message, Role


def _msg(text: str, role: Role = Role.USER) -> Message:
    return Message(text=text, role=role)


class MessageStoreTests(unittest.TestCase):
    """Validate ordering, windowing and token trimming."""

    def test_append_preserves_order_and_returns_index(self) -> None:
        store = MessageStore()
        self.assertEqual(store.append(_msg("one")), 0)
        self.assertEqual(store.append(_msg("two", Role.ASSISTANT)), 1)
        self.assertEqual([m.text for m in store.messages], ["one", "two"])
        self.assertEqual(len(store), 2)

    def test_assign_id_replaces_entry(self) -> None:
        store = MessageStore()
        index = store.append(_msg("hello"))
        store.assign_id(index, "7")
        self.assertEqual(store.messages[0].id, "7")
        self.assertEqual(store.messages[0].text, "hello")

    def test_window_keeps_newest_messages(self) -> None:
        store = MessageStore(context_window_messages=3, max_context_tokens=10_000)
        for i in range(6):
            store.append(_msg(f"m{i}"))
        context = store.build_context()
        self.assertEqual([m.text for m in context], ["m3", "m4", "m5"])

    def test_token_budget_trims_oldest_but_keeps_newest(self) -> None:
        store = MessageStore(context_window_messages=10, max_context_tokens=1_000)
        long_text = "word " * 200
        store.append(_msg(long_text))
        store.append(_msg(long_text))
        store.append(_msg("newest " * 400))
        context = store.build_context(max_context_tokens=50)
        self.assertEqual(len(context), 1)
        self.assertTrue(context[0].text.startswith("newest"))

    def test_preamble_is_placed_first(self) -> None:
        store = MessageStore(context_window_messages=2, max_context_tokens=10_000)
        store.append(_msg("a"))
        store.append(_msg("b"))
        store.append(_msg("c"))
        preamble = [_msg("instructions", Role.SYSTEM)]
        context = store.build_context(preamble=preamble)
        self.assertEqual([m.text for m in context], ["instructions", "b", "c"])
        self.assertEqual(len(store), 3)

    def test_token_estimate_grows_with_text(self) -> None:
        short = MessageStore.estimate_tokens(_msg("hello world"))
        self.assertEqual(short, MessageStore.estimate_tokens(_msg("hello world")))
        self.assertGreater(MessageStore.estimate_tokens(_msg("hello world " * 20)), short)

    def test_clear_empties_log(self) -> None:
        store = MessageStore()
        store.append(_msg("x"))
        store.clear()
        self.assertEqual(store.messages, [])


if __name__ == "__main__":
    unittest.main()
