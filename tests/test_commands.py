"""Tests for command parsing and the handler registry."""

from __future__ import annotations

import unittest

from repochat.commands import CommandRegistry, parse_command


class ParseCommandTests(unittest.TestCase):
    def test_plain_text_is_not_a_command(self) -> None:
        self.assertIsNone(parse_command("hello /read"))

    def test_argument_is_remaining_words_joined_by_single_spaces(self) -> None:
        parsed = parse_command("/READ   src/my   file.py ")
        assert parsed is not None
        self.assertEqual(parsed.verb, "read")
        self.assertEqual(parsed.argument, "src/my file.py")

    def test_bare_prefix(self) -> None:
        parsed = parse_command("/")
        assert parsed is not None
        self.assertEqual(parsed.verb, "")
        self.assertEqual(parsed.argument, "")

    def test_custom_prefix(self) -> None:
        parsed = parse_command("!status", prefix="!")
        assert parsed is not None
        self.assertEqual(parsed.verb, "status")
        self.assertIsNone(parse_command("/status", prefix="!"))


class CommandRegistryTests(unittest.IsolatedAsyncioTestCase):
    async def test_register_and_dispatch(self) -> None:
        registry = CommandRegistry()

        async def handler(argument: str) -> str:
            return f"got {argument}"

        registry.register("/Echo", handler, "/echo <text>", "Echo text")
        spec = registry.get("ECHO")
        assert spec is not None
        self.assertEqual(await spec.handler("x"), "got x")
        self.assertIsNone(registry.get("missing"))

    def test_render_help_lists_usage(self) -> None:
        registry = CommandRegistry()

        async def noop(_: str) -> str:
            return ""

        registry.register("status", noop, help_text="Show status")
        registry.register("read", noop, "/read <path>", "Show a file")
        help_text = registry.render_help()
        self.assertIn("/status", help_text)
        self.assertIn("/read <path>", help_text)
        self.assertIn("Show a file", help_text)
        self.assertLess(help_text.index("/status"), help_text.index("/read"))


if __name__ == "__main__":
    unittest.main()
