"""Tests for the GitHub-backed repository client."""

from __future__ import annotations

import base64
import json
import unittest

import httpx

from repochat.exceptions import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    RepositoryError,
    TransportError,
)
from repochat.repository import RepositoryClient

API = "https://api.github.test"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _commit_payload(path: str, revision: str, commit: str) -> dict[str, object]:
    return {
        "content": {
            "path": path,
            "sha": revision,
            "html_url": f"https://github.test/octo/hello/blob/main/{path}",
        },
        "commit": {"sha": commit, "html_url": f"https://github.test/commit/{commit}"},
    }


class RecordingTransport:
    """Route requests to a handler and remember them."""

    def __init__(self, handler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def _client(handler, token: str | None = "token") -> tuple[RepositoryClient, RecordingTransport]:
    transport = RecordingTransport(handler)
    http = httpx.AsyncClient(transport=httpx.MockTransport(transport))
    client = RepositoryClient(
        "octo", "hello", token=token, api_url=API, client=http
    )
    return client, transport


class ReadTests(unittest.IsolatedAsyncioTestCase):
    async def test_read_file_snapshot_decodes_content(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/repos/octo/hello/contents/lib/bar.txt")
            self.assertEqual(request.url.params["ref"], "main")
            self.assertEqual(request.headers["Authorization"], "Bearer token")
            return httpx.Response(
                200,
                json={"type": "file", "sha": "rev1", "content": _b64("old\n"), "size": 4},
            )

        client, _ = _client(handler)
        snapshot = await client.read_file_snapshot("lib/bar.txt")
        self.assertEqual(snapshot.content, "old\n")
        self.assertEqual(snapshot.revision_id, "rev1")
        self.assertEqual(await client.get_revision_id("lib/bar.txt"), "rev1")

    async def test_non_utf8_content_is_rejected(self) -> None:
        raw = base64.b64encode(b"caf\xe9\n").decode("ascii")
        client, _ = _client(
            lambda request: httpx.Response(
                200, json={"type": "file", "sha": "rev1", "content": raw, "size": 5}
            )
        )
        with self.assertRaisesRegex(RepositoryError, "not UTF-8 text"):
            await client.read_file_snapshot("latin1.txt")

    async def test_missing_file_raises_not_found(self) -> None:
        client, _ = _client(lambda request: httpx.Response(404, json={}))
        with self.assertRaises(NotFoundError):
            await client.read_file("nope.txt")
        self.assertFalse(await client.file_exists("nope.txt"))

    async def test_anonymous_requests_have_no_authorization(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertNotIn("Authorization", request.headers)
            return httpx.Response(200, json=[])

        client, _ = _client(handler, token=None)
        self.assertEqual(await client.list_directory(), [])
        self.assertFalse(client.has_token)

    async def test_server_error_is_transport_error(self) -> None:
        client, _ = _client(lambda request: httpx.Response(502, text="bad gateway"))
        with self.assertRaises(TransportError):
            await client.read_file("a.txt")

    async def test_network_failure_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client, _ = _client(handler)
        with self.assertRaises(TransportError):
            await client.list_directory("")

    async def test_walk_is_depth_limited_and_directories_first(self) -> None:
        listings = {
            "/repos/octo/hello/contents/": [
                {"name": "README.md", "path": "README.md", "type": "file", "size": 10},
                {"name": "lib", "path": "lib", "type": "dir"},
            ],
            "/repos/octo/hello/contents/lib": [
                {"name": "foo.txt", "path": "lib/foo.txt", "type": "file", "size": 5},
                {"name": "deep", "path": "lib/deep", "type": "dir"},
            ],
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=listings[request.url.path])

        client, transport = _client(handler)
        entries = await client.walk("", max_depth=2)
        self.assertEqual(
            [(depth, entry.path) for depth, entry in entries],
            [(0, "lib"), (1, "lib/deep"), (1, "lib/foo.txt"), (0, "README.md")],
        )
        self.assertEqual(len(transport.requests), 2)

    async def test_recent_changes(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/repos/octo/hello/commits")
            self.assertEqual(request.url.params["per_page"], "2")
            return httpx.Response(
                200,
                json=[
                    {
                        "sha": "abcdef1234",
                        "commit": {
                            "message": "Fix bug\n\nDetails",
                            "author": {"name": "Sam"},
                        },
                    },
                    {"sha": "1234567890", "commit": {"message": ""}, "author": None},
                ],
            )

        client, _ = _client(handler)
        changes = await client.recent_changes(2)
        self.assertEqual(changes[0].summary, "Fix bug")
        self.assertEqual(changes[0].short_id, "abcdef1")
        self.assertEqual(changes[0].author, "Sam")
        self.assertEqual(changes[1].summary, "(no message)")
        self.assertEqual(changes[1].author, "unknown")


class WriteTests(unittest.IsolatedAsyncioTestCase):
    async def test_create_file_sends_content_without_revision(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.method, "PUT")
            body = json.loads(request.content)
            self.assertEqual(body["message"], "Create lib/foo.txt via RepoChat")
            self.assertEqual(base64.b64decode(body["content"]).decode(), "hello")
            self.assertEqual(body["branch"], "main")
            self.assertNotIn("sha", body)
            return httpx.Response(201, json=_commit_payload("lib/foo.txt", "r2", "c1"))

        client, _ = _client(handler)
        result = await client.create_file(
            "lib/foo.txt", "hello", "Create lib/foo.txt via RepoChat"
        )
        self.assertEqual(result.new_revision_id, "r2")
        self.assertEqual(result.commit_id, "c1")
        self.assertIn("lib/foo.txt", result.view_url or "")

    async def test_create_existing_file_raises_already_exists(self) -> None:
        client, _ = _client(
            lambda request: httpx.Response(422, json={"message": "Invalid request."})
        )
        with self.assertRaises(AlreadyExistsError):
            await client.create_file("a.txt", "x", "msg")

    async def test_update_uses_expected_revision(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.method, "PUT")
            self.assertEqual(json.loads(request.content)["sha"], "rev1")
            return httpx.Response(200, json=_commit_payload("b.txt", "rev2", "c2"))

        client, transport = _client(handler)
        result = await client.update_file(
            "b.txt", "new", "Update b.txt via RepoChat", expected_revision_id="rev1"
        )
        self.assertEqual(result.new_revision_id, "rev2")
        self.assertEqual(len(transport.requests), 1)

    async def test_update_without_revision_fetches_current(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(
                    200, json={"type": "file", "sha": "cur", "content": _b64("x")}
                )
            self.assertEqual(json.loads(request.content)["sha"], "cur")
            return httpx.Response(200, json=_commit_payload("b.txt", "next", "c3"))

        client, transport = _client(handler)
        await client.update_file("b.txt", "y", "msg")
        self.assertEqual([r.method for r in transport.requests], ["GET", "PUT"])

    async def test_stale_revision_raises_conflict(self) -> None:
        client, _ = _client(
            lambda request: httpx.Response(409, json={"message": "sha mismatch"})
        )
        with self.assertRaises(ConflictError):
            await client.update_file("b.txt", "y", "msg", expected_revision_id="old")

    async def test_delete_file(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(
                    200, json={"type": "file", "sha": "cur", "content": _b64("x")}
                )
            self.assertEqual(request.method, "DELETE")
            self.assertEqual(json.loads(request.content)["sha"], "cur")
            return httpx.Response(200, json={"content": None, "commit": {"sha": "c4"}})

        client, _ = _client(handler)
        result = await client.delete_file("b.txt", "Delete b.txt via RepoChat")
        self.assertEqual(result.commit_id, "c4")

    async def test_writes_require_token(self) -> None:
        client, transport = _client(lambda request: httpx.Response(200), token=None)
        with self.assertRaises(RepositoryError):
            await client.create_file("a.txt", "x", "msg")
        self.assertEqual(transport.requests, [])

    async def test_write_access_probe(self) -> None:
        client, _ = _client(
            lambda request: httpx.Response(
                200, json={"full_name": "octo/hello", "permissions": {"push": True}}
            )
        )
        self.assertTrue(await client.test_write_access())
        self.assertTrue(await client.test_connection())

        read_only, _ = _client(
            lambda request: httpx.Response(200, json={"permissions": {"pull": True}})
        )
        self.assertFalse(await read_only.test_write_access())

        anonymous, transport = _client(lambda request: httpx.Response(200), token=None)
        self.assertFalse(await anonymous.test_write_access())
        self.assertEqual(transport.requests, [])

    async def test_write_access_probe_propagates_host_failure(self) -> None:
        client, _ = _client(lambda request: httpx.Response(503, text="unavailable"))
        with self.assertRaises(TransportError):
            await client.test_write_access()
        self.assertFalse(await client.test_connection())

    async def test_non_json_answers_raise_repository_error(self) -> None:
        client, _ = _client(
            lambda request: httpx.Response(200, text="<html>proxy login</html>")
        )
        with self.assertRaisesRegex(RepositoryError, "non-JSON"):
            await client.read_file("README.md")
        with self.assertRaisesRegex(RepositoryError, "non-JSON"):
            await client.recent_changes()
        with self.assertRaisesRegex(RepositoryError, "non-JSON"):
            await client.create_file("a.txt", "x", "msg")


if __name__ == "__main__":
    unittest.main()
