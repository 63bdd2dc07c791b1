"""Conversation orchestration: routing, context windows and pending-file commits."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import logging
from typing import Any

from .commands import CommandRegistry, ParsedCommand, parse_command
from .exceptions import (
    AlreadyExistsError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    RepoChatError,
    RepositoryError,
    TransportError,
    ValidationError,
)
from .extraction import ContentValidator, KeywordContentValidator, extract_code_block
from .message_store import MessageStore
from .models import ChatTurn, CommitResult, Message, Role
from .pending import PendingOperation, PendingOperationTracker
from .persistence import MessagePersistence
from .providers.base import AIProvider
from .repository import RepositoryClient
from .state import ConversationState

LOGGER = logging.getLogger(__name__)

COMMIT_MESSAGES = {
    "create": "Create {path} via RepoChat",
    "update": "Update {path} via RepoChat",
    "delete": "Delete {path} via RepoChat",
}


def _fence(content: str) -> str:
    body = content if content.endswith("\n") else f"{content}\n"
    return f"```\n{body}```"


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


class ConversationOrchestrator:
    """Own the conversation log and turn user input into AI calls or repository work.

    Input starting with the command prefix is resolved locally and answered
    with a system message. Anything else is a chat turn: the reply is scanned
    for a fenced code block for every pending file operation, and valid
    blocks are committed to the repository.

    Calls are expected one at a time; concurrent ``send_message`` calls are
    not supported.
    """

    def __init__(
        self,
        provider: AIProvider | None,
        persistence: MessagePersistence,
        repository: RepositoryClient | None = None,
        *,
        command_prefix: str = "/",
        context_window_messages: int = 16,
        max_context_tokens: int = 8000,
        recent_commits_limit: int = 5,
        structure_max_depth: int = 3,
        retention_days: int = 0,
        validator: ContentValidator | None = None,
    ) -> None:
        self._provider = provider
        self._persistence = persistence
        self._repository = repository
        self.command_prefix = command_prefix
        self.recent_commits_limit = recent_commits_limit
        self.structure_max_depth = structure_max_depth
        self.retention_days = retention_days
        self._validator: ContentValidator = validator or KeywordContentValidator()
        self._state = ConversationState(
            store=MessageStore(
                context_window_messages=context_window_messages,
                max_context_tokens=max_context_tokens,
            )
        )
        self._pending = PendingOperationTracker()
        self._loaded_files: list[str] = []
        self._write_access: bool | None = None
        self._commands = CommandRegistry(prefix=command_prefix)
        self._register_commands()

    @classmethod
    def from_config(
        cls,
        config: dict[str, dict[str, Any]],
        provider: AIProvider | None,
        persistence: MessagePersistence,
        repository: RepositoryClient | None = None,
    ) -> ConversationOrchestrator:
        conversation = config["conversation"]
        return cls(
            provider,
            persistence,
            repository,
            command_prefix=str(conversation["command_prefix"]),
            context_window_messages=int(conversation["context_window_messages"]),
            max_context_tokens=int(conversation["max_context_tokens"]),
            recent_commits_limit=int(conversation["recent_commits_limit"]),
            structure_max_depth=int(config["repository"]["structure_max_depth"]),
            retention_days=int(config["persistence"]["retention_days"]),
        )

    # -- read-only views -------------------------------------------------

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def messages(self) -> list[Message]:
        return self._state.messages

    @property
    def pending(self) -> PendingOperationTracker:
        return self._pending

    @property
    def loaded_files(self) -> list[str]:
        return list(self._loaded_files)

    @property
    def is_busy(self) -> bool:
        return self._state.is_busy

    @property
    def last_error(self) -> str | None:
        return self._state.last_error

    @property
    def provider(self) -> AIProvider | None:
        return self._provider

    @property
    def repository(self) -> RepositoryClient | None:
        return self._repository

    @property
    def provider_label(self) -> str:
        return self._provider.name if self._provider is not None else "none"

    # -- collaborators ---------------------------------------------------

    async def set_provider(self, provider: AIProvider) -> bool:
        """Initialize and switch to ``provider``; keep the old one on failure."""
        try:
            await provider.initialize()
        except ConfigurationError as exc:
            self._state.last_error = f"Failed to initialize provider: {exc}"
            LOGGER.warning(
                "orchestrator.provider.init_failed",
                extra={"event": "orchestrator.provider.init_failed", "error": str(exc)},
            )
            return False
        previous, self._provider = self._provider, provider
        self._state.last_error = None
        if previous is not None and previous is not provider:
            await previous.dispose()
        LOGGER.info(
            "orchestrator.provider.set",
            extra={"event": "orchestrator.provider.set", "provider": provider.name},
        )
        return True

    def set_repository(self, repository: RepositoryClient | None) -> None:
        self._repository = repository
        self._write_access = None

    # -- history -----------------------------------------------------------

    async def load_history(self) -> None:
        """Apply retention and load persisted messages into the log."""
        try:
            if self.retention_days > 0:
                cutoff = datetime.now(UTC) - timedelta(days=self.retention_days)
                await self._persistence.delete_older_than(cutoff)
            messages = await self._persistence.load_all()
        except PersistenceError as exc:
            LOGGER.warning(
                "orchestrator.history.load_failed",
                extra={"event": "orchestrator.history.load_failed", "error": str(exc)},
            )
            return
        self._state.store.replace_messages(messages)
        self._state.history_loaded = True
        LOGGER.info(
            "orchestrator.history.loaded",
            extra={"event": "orchestrator.history.loaded", "count": len(messages)},
        )

    async def clear_conversation(self) -> None:
        """Drop messages, pending operations and loaded files, in memory and on disk."""
        self._state.reset()
        self._pending.clear()
        self._loaded_files.clear()
        try:
            await self._persistence.clear()
        except PersistenceError as exc:
            LOGGER.warning(
                "orchestrator.persistence.clear_failed",
                extra={
                    "event": "orchestrator.persistence.clear_failed",
                    "error": str(exc),
                },
            )

    async def _append(self, text: str, role: Role) -> Message:
        message = Message(text=text, role=role)
        index = self._state.store.append(message)
        try:
            message_id = await self._persistence.append(message, self.provider_label)
        except PersistenceError as exc:
            LOGGER.warning(
                "orchestrator.persistence.append_failed",
                extra={
                    "event": "orchestrator.persistence.append_failed",
                    "role": role.value,
                    "error": str(exc),
                },
            )
            return message
        self._state.store.assign_id(index, message_id)
        return self._state.store.messages[index]

    async def _system(self, text: str) -> Message:
        return await self._append(text, Role.SYSTEM)

    # -- turns -------------------------------------------------------------

    async def send_message(self, text: str) -> list[Message]:
        """Process one line of user input and return the messages it appended."""
        if not text.strip():
            return []
        before = len(self._state.store)
        self._state.is_busy = True
        try:
            parsed = parse_command(text, self.command_prefix)
            if parsed is not None:
                await self._handle_command(parsed)
            else:
                await self._chat_turn(text)
        finally:
            self._state.is_busy = False
        return self._state.store.messages[before:]

    async def _chat_turn(self, text: str) -> None:
        await self._append(text, Role.USER)
        if self._provider is None:
            self._state.last_error = "No AI provider configured"
            await self._system("Error: No AI provider configured.")
            return

        window = self.build_context_window()
        try:
            reply = await self._provider.converse(
                [ChatTurn.from_message(m) for m in window]
            )
        except RepoChatError as exc:
            self._state.last_error = f"Failed to get AI response: {exc}"
            LOGGER.warning(
                "orchestrator.provider.failed",
                extra={
                    "event": "orchestrator.provider.failed",
                    "provider": self.provider_label,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            await self._system(f"Error: {exc}")
            return

        self._state.last_error = None
        await self._append(reply, Role.ASSISTANT)
        if len(self._pending):
            await self._apply_pending(reply)

    def build_context_window(self) -> list[Message]:
        """Newest messages in order, led by the pending-operation instruction if any."""
        preamble: list[Message] = []
        if len(self._pending):
            preamble.append(
                Message(text=self._pending_instruction(), role=Role.SYSTEM)
            )
        return self._state.store.build_context(preamble=preamble)

    def _pending_instruction(self) -> str:
        target = self._repository.slug if self._repository else "the repository"
        lines = [
            f"You are helping edit files in {target}.",
            "Reply with the complete content of each file listed below inside a "
            "single fenced code block (```), one block per file, and label each "
            "block with its file path on the line just above it.",
            "Do not claim that you created, updated or committed anything yourself. "
            "The application commits the code block after your reply.",
            "",
            "Pending file operations:",
        ]
        for operation in self._pending.items():
            if operation.is_update:
                lines.append(
                    f"- update {operation.path} (current content below, edit from it)"
                )
                lines.append(_fence(operation.prior_content or ""))
            else:
                lines.append(f"- create {operation.path} (new file)")
        if self._loaded_files:
            lines.append("")
            lines.append("Files already shown in this conversation: " + ", ".join(
                self._loaded_files
            ))
        return "\n".join(lines)

    async def _apply_pending(self, reply: str) -> None:
        for operation in self._pending.items():
            block = extract_code_block(reply, operation.path)
            if block is None:
                continue
            try:
                content = self._validator.validate(operation.path, block.code)
            except ValidationError as exc:
                LOGGER.info(
                    "orchestrator.extraction.rejected",
                    extra={
                        "event": "orchestrator.extraction.rejected",
                        "path": operation.path,
                        "reason": str(exc),
                    },
                )
                continue
            await self._commit(operation, content)

    async def _commit(self, operation: PendingOperation, content: str) -> None:
        path = operation.path
        if self._repository is None:
            await self._system(
                f"Cannot commit {path}: no repository is configured."
            )
            return
        kind = operation.kind.value
        message = COMMIT_MESSAGES[kind].format(path=path)
        try:
            if operation.is_update:
                result = await self._repository.update_file(
                    path,
                    content,
                    message,
                    expected_revision_id=operation.prior_revision_id,
                )
            else:
                result = await self._repository.create_file(path, content, message)
        except ConflictError as exc:
            await self._system(
                f"Commit conflict on {path}: the file changed since the edit was "
                f"requested ({exc}). Run {self.command_prefix}edit {path} again "
                "and re-send your request."
            )
            return
        except AlreadyExistsError:
            await self._system(
                f"Commit failed: {path} already exists. Use "
                f"{self.command_prefix}edit {path} to change it."
            )
            return
        except (RepositoryError, TransportError) as exc:
            await self._system(f"Commit failed for {path}: {exc}")
            return

        self._pending.remove(path)
        LOGGER.info(
            "orchestrator.commit.succeeded",
            extra={
                "event": "orchestrator.commit.succeeded",
                "path": path,
                "kind": kind,
                "revision": result.new_revision_id,
            },
        )
        verb = "Updated" if operation.is_update else "Created"
        await self._system(self._commit_summary(verb, path, result))

    @staticmethod
    def _commit_summary(verb: str, path: str, result: CommitResult) -> str:
        lines = [
            f"{verb} {path}",
            f"Message: {result.commit_message}",
            f"Revision: {result.new_revision_id}",
        ]
        if result.commit_id:
            lines.append(f"Commit: {result.commit_id}")
        if result.view_url:
            lines.append(f"View: {result.view_url}")
        return "\n".join(lines)

    # -- commands ----------------------------------------------------------

    def _register_commands(self) -> None:
        table = (
            ("read", self._cmd_read, "read <path>", "Show a file"),
            ("structure", self._cmd_structure, "structure", "Show the file tree"),
            ("files", self._cmd_files, "files [path]", "List a directory"),
            ("commits", self._cmd_commits, "commits", "Show recent commits"),
            ("create", self._cmd_create, "create <path>", "Ask the AI for a new file"),
            ("edit", self._cmd_edit, "edit <path>", "Have the AI change a file"),
            ("write", self._cmd_write, "write <path>", "Create or edit as needed"),
            ("delete", self._cmd_delete, "delete <path>", "Delete a file now"),
            ("cancel", self._cmd_cancel, "cancel [path]", "Drop pending operations"),
            ("diff", self._cmd_diff, "diff", "List pending operations"),
            ("status", self._cmd_status, "status", "Show connection status"),
            ("help", self._cmd_help, "help", "Show this reference"),
        )
        for name, handler, usage, help_text in table:
            self._commands.register(
                name, handler, f"{self.command_prefix}{usage}", help_text
            )

    async def _handle_command(self, parsed: ParsedCommand) -> None:
        spec = self._commands.get(parsed.verb)
        if spec is None:
            LOGGER.info(
                "orchestrator.command.unknown",
                extra={"event": "orchestrator.command.unknown", "verb": parsed.verb},
            )
            await self._system(
                f"Unknown command: {self.command_prefix}{parsed.verb}. "
                f"Type {self.command_prefix}help for the command list."
            )
            return
        try:
            reply = await spec.handler(parsed.argument)
        except NotFoundError:
            reply = f"File not found: {parsed.argument or '/'}"
        except (RepositoryError, TransportError) as exc:
            reply = f"Repository error: {exc}"
        await self._system(reply)

    def _no_repository(self) -> str:
        return (
            "No repository configured. Set the repository owner and name "
            "(and a token for write access) first."
        )

    async def _write_access_available(self) -> bool:
        if self._repository is None:
            return False
        if self._write_access is None:
            self._write_access = await self._repository.test_write_access()
        return self._write_access

    async def _write_precondition(self, path: str, verb: str) -> str | None:
        """Return a refusal message, or ``None`` when a write command may proceed."""
        if not path:
            return f"Usage: {self.command_prefix}{verb} <path>"
        if self._repository is None:
            return self._no_repository()
        if not await self._write_access_available():
            return (
                "Write access is not available. Configure a repository token "
                "with push permission to create, edit or delete files."
            )
        return None

    async def _cmd_read(self, path: str) -> str:
        if not path:
            return f"Usage: {self.command_prefix}read <path>"
        if self._repository is None:
            return self._no_repository()
        content = await self._repository.read_file(path)
        if path not in self._loaded_files:
            self._loaded_files.append(path)
        return f"{path}\n{_fence(content)}"

    async def _cmd_structure(self, _: str) -> str:
        if self._repository is None:
            return self._no_repository()
        entries = await self._repository.walk("", max_depth=self.structure_max_depth)
        if not entries:
            return f"{self._repository.slug} is empty."
        lines = [f"Structure of {self._repository.slug}:"]
        for depth, entry in entries:
            suffix = "/" if entry.is_directory else ""
            lines.append(f"{'  ' * (depth + 1)}{entry.name}{suffix}")
        return "\n".join(lines)

    async def _cmd_files(self, path: str) -> str:
        if self._repository is None:
            return self._no_repository()
        entries = await self._repository.list_directory(path)
        entries.sort(key=lambda item: (not item.is_directory, item.name.lower()))
        lines = [f"Contents of /{path.strip('/')}:"]
        for entry in entries:
            if entry.is_directory:
                lines.append(f"  {entry.name}/")
            else:
                lines.append(f"  {entry.name} ({_format_size(entry.size)})")
        if len(lines) == 1:
            lines.append("  (empty)")
        return "\n".join(lines)

    async def _cmd_commits(self, _: str) -> str:
        if self._repository is None:
            return self._no_repository()
        changes = await self._repository.recent_changes(self.recent_commits_limit)
        if not changes:
            return "No commits found."
        lines = [f"Recent commits on {self._repository.branch}:"]
        for change in changes:
            lines.append(f"- {change.short_id} {change.summary} ({change.author})")
        return "\n".join(lines)

    async def _start_create(self, path: str) -> str:
        self._pending.set_create(path)
        return (
            f"Ready to create {path}. Describe what it should contain; the next "
            "code block in the assistant's reply will be committed as the file."
        )

    async def _start_update(self, repository: RepositoryClient, path: str) -> str:
        snapshot = await repository.read_file_snapshot(path)
        self._pending.set_update(path, snapshot.content, snapshot.revision_id)
        if path not in self._loaded_files:
            self._loaded_files.append(path)
        return (
            f"Ready to edit {path}. Describe the change; the next code block in "
            "the assistant's reply will replace the file.\n"
            f"Current content:\n{_fence(snapshot.content)}"
        )

    async def _cmd_create(self, path: str) -> str:
        refusal = await self._write_precondition(path, "create")
        repository = self._repository
        if refusal or repository is None:
            return refusal or self._no_repository()
        if await repository.file_exists(path):
            return (
                f"{path} already exists. Use {self.command_prefix}edit {path} "
                "to change it."
            )
        return await self._start_create(path)

    async def _cmd_edit(self, path: str) -> str:
        refusal = await self._write_precondition(path, "edit")
        repository = self._repository
        if refusal or repository is None:
            return refusal or self._no_repository()
        try:
            return await self._start_update(repository, path)
        except NotFoundError:
            return (
                f"File not found: {path}. Use {self.command_prefix}create {path} "
                "to add it."
            )

    async def _cmd_write(self, path: str) -> str:
        refusal = await self._write_precondition(path, "write")
        repository = self._repository
        if refusal or repository is None:
            return refusal or self._no_repository()
        try:
            return await self._start_update(repository, path)
        except NotFoundError:
            return await self._start_create(path)

    async def _cmd_delete(self, path: str) -> str:
        refusal = await self._write_precondition(path, "delete")
        repository = self._repository
        if refusal or repository is None:
            return refusal or self._no_repository()
        result = await repository.delete_file(
            path, COMMIT_MESSAGES["delete"].format(path=path)
        )
        self._pending.remove(path)
        if path in self._loaded_files:
            self._loaded_files.remove(path)
        return self._commit_summary("Deleted", path, result)

    async def _cmd_cancel(self, path: str) -> str:
        if path:
            if self._pending.remove(path):
                return f"Cancelled pending operation for {path}."
            return f"No pending operation for {path}."
        count = len(self._pending)
        self._pending.clear()
        return f"Cancelled {count} pending operation(s)."

    async def _cmd_diff(self, _: str) -> str:
        operations = self._pending.items()
        if not operations:
            return "No pending operations."
        lines = ["Pending operations:"]
        for operation in operations:
            if operation.is_update:
                revision = (operation.prior_revision_id or "")[:7]
                lines.append(f"- update {operation.path} (from revision {revision})")
            else:
                lines.append(f"- create {operation.path}")
        return "\n".join(lines)

    async def _cmd_status(self, _: str) -> str:
        lines = [f"Provider: {self.provider_label}"]
        if self._repository is None:
            lines.append("Repository: not configured")
            access = "unavailable"
        else:
            lines.append(
                f"Repository: {self._repository.slug} "
                f"(branch {self._repository.branch})"
            )
            reachable = await self._repository.test_connection()
            lines.append(f"Connection: {'reachable' if reachable else 'unreachable'}")
            try:
                writable = await self._write_access_available()
            except TransportError:
                access = "unknown (repository host unreachable)"
            else:
                access = "available" if writable else "read-only"
        lines.append(f"Write access: {access}")
        lines.append(f"Pending operations: {len(self._pending)}")
        lines.append(f"Messages: {len(self._state.store)}")
        return "\n".join(lines)

    async def _cmd_help(self, _: str) -> str:
        return (
            self._commands.render_help()
            + "\n\nAny other input is sent to the AI. After "
            f"{self.command_prefix}create or {self.command_prefix}edit, the next "
            "code block the AI replies with is committed automatically."
        )
