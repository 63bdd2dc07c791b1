"""CLI entrypoint for RepoChat."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path

from .app import ChatApplication
from .config import ensure_config_dir, load_config
from .credentials import KNOWN_KEYS, FileSecretStore
from .logging_utils import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repochat",
        description="RepoChat - chat with an AI about a remote repository",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument("--config", type=Path, help="Path to a config.toml file")
    parser.add_argument(
        "--provider",
        choices=("echo", "ollama", "claude", "grok"),
        help="AI provider to use for this session",
    )
    parser.add_argument(
        "--set-secret",
        metavar="KEY=VALUE",
        help="Store a secret value and exit",
    )
    parser.add_argument(
        "--delete-secret",
        metavar="KEY",
        help="Remove a stored secret and exit",
    )
    return parser


def _manage_secrets(
    parser: argparse.ArgumentParser, args: argparse.Namespace, secrets_path: Path
) -> None:
    store = FileSecretStore(secrets_path)
    if args.set_secret:
        key, sep, value = args.set_secret.partition("=")
        key = key.strip()
        if not sep or key not in KNOWN_KEYS:
            parser.error(
                "--set-secret expects KEY=VALUE with KEY in " + ", ".join(KNOWN_KEYS)
            )
        store.set(key, value.strip())
        print(f"Stored {key}.")
    if args.delete_secret:
        store.delete(args.delete_secret.strip())
        print(f"Removed {args.delete_secret.strip()}.")


async def _run(config: dict, provider_kind: str | None) -> None:
    async with ChatApplication(config, provider_kind=provider_kind) as app:
        await app.run_repl()


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the chat loop."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("repochat")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"repochat {version}")
        return

    ensure_config_dir()
    config = load_config(args.config)
    configure_logging(config["logging"])

    if args.set_secret or args.delete_secret:
        _manage_secrets(parser, args, Path(config["secrets"]["path"]).expanduser())
        return

    try:
        asyncio.run(_run(config, args.provider))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
