"""Tests for fenced code-block extraction and content validation."""

from __future__ import annotations

import unittest

from repochat.exceptions import ValidationError
from repochat.extraction import (
    KeywordContentValidator,
    extract_code_block,
    find_code_blocks,
)


class ExtractionTests(unittest.TestCase):
    def test_no_fence_returns_none(self) -> None:
        self.assertIsNone(extract_code_block("Sure, I will do that."))

    def test_untagged_fence(self) -> None:
        block = extract_code_block("Here:\n```\nhello\n```\nDone.")
        assert block is not None
        self.assertEqual(block.code, "hello\n")
        self.assertFalse(block.tagged)

    def test_tagged_fence_preferred_over_untagged(self) -> None:
        text = "```\nplain\n```\n\n```python\nprint('hi')\n```"
        block = extract_code_block(text)
        assert block is not None
        self.assertEqual(block.language, "python")
        self.assertEqual(block.code, "print('hi')\n")

    def test_find_code_blocks_orders_tagged_first(self) -> None:
        text = "```\none\n```\n```js\ntwo\n```\n```\nthree\n```"
        self.assertEqual(
            [b.code for b in find_code_blocks(text)], ["two\n", "one\n", "three\n"]
        )

    def test_block_labelled_with_path_wins(self) -> None:
        text = (
            "```python\nimport os\n```\n\n"
            "lib/util.py:\n```python\ndef helper():\n    return 1\n```"
        )
        block = extract_code_block(text, "lib/util.py")
        assert block is not None
        self.assertIn("def helper", block.code)

    def test_path_in_info_string_wins(self) -> None:
        text = "```js\nconst a = 1;\n```\n```ts app.ts\nconst b = 2;\n```"
        block = extract_code_block(text, "src/app.ts")
        assert block is not None
        self.assertIn("const b", block.code)


class KeywordContentValidatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.validator = KeywordContentValidator()

    def test_plain_text_only_needs_content(self) -> None:
        self.assertEqual(self.validator.validate("lib/foo.txt", "hello\n"), "hello")

    def test_blank_content_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.validator.validate("notes.md", "  \n\n")

    def test_source_file_requires_keyword(self) -> None:
        with self.assertRaises(ValidationError):
            self.validator.validate("main.py", "just some prose here")
        self.assertEqual(
            self.validator.validate("main.py", "def main():\n    pass\n"),
            "def main():\n    pass",
        )

    def test_leading_indentation_is_kept(self) -> None:
        content = "    return value\n"
        self.assertEqual(self.validator.validate("x.py", content), "    return value")


if __name__ == "__main__":
    unittest.main()
