"""Slash command parsing and handler registry."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging

LOGGER = logging.getLogger(__name__)

CommandHandler = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class ParsedCommand:
    """A ``<prefix><verb> <argument...>`` line split into its parts."""

    verb: str
    argument: str


def parse_command(text: str, prefix: str = "/") -> ParsedCommand | None:
    """Split a command line; the argument is the remaining words joined by spaces.

    Returns ``None`` when ``text`` does not start with ``prefix``.
    """
    if not text.startswith(prefix):
        return None
    parts = text[len(prefix):].split()
    if not parts:
        return ParsedCommand(verb="", argument="")
    return ParsedCommand(verb=parts[0].lower(), argument=" ".join(parts[1:]))


@dataclass(frozen=True)
class CommandSpec:
    name: str
    handler: CommandHandler
    usage: str
    help_text: str


class CommandRegistry:
    """Map verbs to async handlers that return the system message to emit."""

    def __init__(self, prefix: str = "/") -> None:
        self.prefix = prefix
        self._commands: dict[str, CommandSpec] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        usage: str = "",
        help_text: str = "",
    ) -> None:
        """Register ``handler`` under ``name`` (with or without the prefix)."""
        normalized_name = name.lstrip(self.prefix).lower()
        self._commands[normalized_name] = CommandSpec(
            name=normalized_name,
            handler=handler,
            usage=usage or f"{self.prefix}{normalized_name}",
            help_text=help_text or f"Execute {self.prefix}{normalized_name}",
        )
        LOGGER.debug("Registered command: %s%s", self.prefix, normalized_name)

    def get(self, verb: str) -> CommandSpec | None:
        return self._commands.get(verb.lower())

    def render_help(self) -> str:
        width = max((len(spec.usage) for spec in self._commands.values()), default=0)
        lines = ["Available commands:"]
        for spec in self._commands.values():
            lines.append(f"  {spec.usage.ljust(width)}  {spec.help_text}")
        return "\n".join(lines)
