"""Async client for a remote content-addressed file store (GitHub contents API)."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .exceptions import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    RepositoryError,
    TransportError,
)
from .models import Changeset, CommitResult, FileSnapshot, RepositoryFile

LOGGER = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


def _encode_content(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def _decode_content(raw: str, path: str) -> str:
    try:
        decoded = base64.b64decode(raw.replace("\n", ""), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise RepositoryError(f"File content is not valid base64: {exc}") from exc
    try:
        return decoded.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise RepositoryError(f"{path} is not UTF-8 text.") from exc


class RepositoryClient:
    """Read files and perform optimistic-concurrency writes on one branch.

    Without a token the client is read-only. It never retries: every failure
    is raised to the caller.
    """

    def __init__(
        self,
        owner: str,
        name: str,
        token: str | None = None,
        branch: str = "main",
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        user_agent: str = "RepoChat",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.owner = owner
        self.name = name
        self.branch = branch
        self.api_url = api_url.rstrip("/")
        self._token = (token or "").strip() or None
        self._user_agent = user_agent
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def has_token(self) -> bool:
        return self._token is not None

    @property
    def _repo_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.name}"

    def _contents_url(self, path: str) -> str:
        normalized = path.strip().strip("/")
        return f"{self._repo_url}/contents/{quote(normalized, safe='/')}"

    @property
    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self._user_agent,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, url, headers=self._headers, **kwargs
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Unable to reach {self.api_url}: {exc}") from exc
        if response.status_code >= 500:
            raise TransportError(
                f"Repository host error: {response.status_code} - {response.text[:300]}"
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise RepositoryError(
                f"Repository host returned a non-JSON payload ({response.status_code})."
            ) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, path: str) -> None:
        status = response.status_code
        if response.is_success:
            return
        if status == 404:
            raise NotFoundError(f"File not found: {path}")
        if status in (401, 403):
            raise RepositoryError(f"Permission denied for {path} ({status}).")
        raise RepositoryError(
            f"Repository API error: {status} - {response.text[:300]}"
        )

    async def _get_contents(self, path: str) -> Any:
        response = await self._request(
            "GET", self._contents_url(path), params={"ref": self.branch}
        )
        self._raise_for_status(response, path or "/")
        return self._json(response)

    async def read_file_snapshot(self, path: str) -> FileSnapshot:
        """Return file content together with its current revision id."""
        data = await self._get_contents(path)
        if not isinstance(data, dict) or data.get("type") != "file":
            raise RepositoryError(f"{path} is not a file.")
        raw = data.get("content")
        if not isinstance(raw, str):
            raise RepositoryError(f"No content found in file {path}.")
        if not raw and int(data.get("size") or 0) > 0:
            raise RepositoryError(f"{path} is too large to read through the API.")
        return FileSnapshot(
            path=path,
            content=_decode_content(raw, path),
            revision_id=str(data.get("sha", "")),
        )

    async def read_file(self, path: str) -> str:
        snapshot = await self.read_file_snapshot(path)
        return snapshot.content

    async def get_revision_id(self, path: str) -> str:
        data = await self._get_contents(path)
        if not isinstance(data, dict) or not data.get("sha"):
            raise RepositoryError(f"{path} has no revision id.")
        return str(data["sha"])

    async def file_exists(self, path: str) -> bool:
        try:
            await self._get_contents(path)
        except NotFoundError:
            return False
        return True

    async def list_directory(self, path: str = "") -> list[RepositoryFile]:
        data = await self._get_contents(path)
        entries = data if isinstance(data, list) else [data]
        files: list[RepositoryFile] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            files.append(
                RepositoryFile(
                    path=str(entry.get("path", "")),
                    name=str(entry.get("name", "")),
                    is_directory=entry.get("type") == "dir",
                    size=int(entry.get("size") or 0),
                    revision_id=entry.get("sha"),
                )
            )
        return files

    async def walk(
        self, path: str = "", max_depth: int = 3
    ) -> list[tuple[int, RepositoryFile]]:
        """Depth-first listing as ``(depth, entry)`` pairs, directories first."""
        result: list[tuple[int, RepositoryFile]] = []

        async def _visit(current: str, depth: int) -> None:
            entries = await self.list_directory(current)
            entries.sort(key=lambda item: (not item.is_directory, item.name.lower()))
            for entry in entries:
                result.append((depth, entry))
                if entry.is_directory and depth + 1 < max_depth:
                    await _visit(entry.path, depth + 1)

        await _visit(path, 0)
        return result

    @staticmethod
    def _commit_result(data: Any, message: str) -> CommitResult:
        if not isinstance(data, dict):
            raise RepositoryError("Repository returned an unexpected commit payload.")
        content = data.get("content") if isinstance(data.get("content"), dict) else {}
        commit = data.get("commit") if isinstance(data.get("commit"), dict) else {}
        commit_id = commit.get("sha")
        revision = content.get("sha") or commit_id
        if not revision:
            raise RepositoryError("Repository response is missing a revision id.")
        return CommitResult(
            new_revision_id=str(revision),
            commit_message=message,
            commit_id=str(commit_id) if commit_id else None,
            view_url=content.get("html_url") or commit.get("html_url"),
        )

    def _require_token(self) -> None:
        if not self._token:
            raise RepositoryError("Write access requires a repository token.")

    async def _put(
        self, path: str, content: str, message: str, revision_id: str | None
    ) -> httpx.Response:
        payload: dict[str, Any] = {
            "message": message,
            "content": _encode_content(content),
            "branch": self.branch,
        }
        if revision_id:
            payload["sha"] = revision_id
        return await self._request("PUT", self._contents_url(path), json=payload)

    async def create_file(self, path: str, content: str, message: str) -> CommitResult:
        """Create ``path``; the store rejects it if the path already exists."""
        self._require_token()
        response = await self._put(path, content, message, None)
        if response.status_code == 422:
            raise AlreadyExistsError(f"File already exists: {path}")
        if response.status_code == 409:
            raise ConflictError(f"Write conflict while creating {path}.")
        self._raise_for_status(response, path)
        result = self._commit_result(self._json(response), message)
        LOGGER.info(
            "repository.create",
            extra={
                "event": "repository.create",
                "path": path,
                "revision": result.new_revision_id,
            },
        )
        return result

    async def update_file(
        self,
        path: str,
        content: str,
        message: str,
        expected_revision_id: str | None = None,
    ) -> CommitResult:
        """Replace ``path`` if the store still holds ``expected_revision_id``.

        When no revision is given the current one is fetched first.
        """
        self._require_token()
        revision = expected_revision_id or await self.get_revision_id(path)
        response = await self._put(path, content, message, revision)
        if response.status_code == 409 or (
            response.status_code == 422 and "sha" in response.text.lower()
        ):
            raise ConflictError(
                f"Write conflict on {path}: revision {revision[:7]} "
                "is no longer current."
            )
        self._raise_for_status(response, path)
        result = self._commit_result(self._json(response), message)
        LOGGER.info(
            "repository.update",
            extra={
                "event": "repository.update",
                "path": path,
                "previous": revision,
                "revision": result.new_revision_id,
            },
        )
        return result

    async def delete_file(self, path: str, message: str) -> CommitResult:
        self._require_token()
        revision = await self.get_revision_id(path)
        response = await self._request(
            "DELETE",
            self._contents_url(path),
            json={"message": message, "sha": revision, "branch": self.branch},
        )
        if response.status_code == 409:
            raise ConflictError(f"Write conflict while deleting {path}.")
        self._raise_for_status(response, path)
        result = self._commit_result(self._json(response), message)
        LOGGER.info(
            "repository.delete",
            extra={"event": "repository.delete", "path": path},
        )
        return result

    async def repository_info(self) -> dict[str, Any]:
        response = await self._request("GET", self._repo_url)
        self._raise_for_status(response, self.slug)
        data = self._json(response)
        if not isinstance(data, dict):
            raise RepositoryError("Repository returned an unexpected payload.")
        return data

    async def test_connection(self) -> bool:
        try:
            await self.repository_info()
        except (RepositoryError, TransportError):
            return False
        return True

    async def test_write_access(self) -> bool:
        """Report whether the token may push; reads permissions only."""
        if not self._token:
            return False
        try:
            info = await self.repository_info()
        except RepositoryError as exc:
            LOGGER.warning(
                "repository.write_probe_failed",
                extra={"event": "repository.write_probe_failed", "error": str(exc)},
            )
            return False
        permissions = info.get("permissions")
        if not isinstance(permissions, dict):
            return False
        return bool(permissions.get("push") or permissions.get("admin"))

    async def recent_changes(self, limit: int = 5) -> list[Changeset]:
        response = await self._request(
            "GET",
            f"{self._repo_url}/commits",
            params={"sha": self.branch, "per_page": max(1, limit)},
        )
        self._raise_for_status(response, self.slug)
        data = self._json(response)
        changes: list[Changeset] = []
        for item in data if isinstance(data, list) else []:
            if not isinstance(item, dict):
                continue
            commit = item.get("commit") or {}
            message = str(commit.get("message") or "").strip()
            author = (commit.get("author") or {}).get("name") or (
                item.get("author") or {}
            ).get("login")
            changes.append(
                Changeset(
                    summary=message.splitlines()[0] if message else "(no message)",
                    author=str(author or "unknown"),
                    id=str(item.get("sha", "")),
                    url=item.get("html_url"),
                )
            )
        return changes[:limit]

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
