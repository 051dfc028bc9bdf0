"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
import math
import re
from pathlib import Path
from typing import Any

import httpx
import pytest

from lskysync.client import LskyClient
from lskysync.config import PacingConfig, ServerConfig
from lskysync.vault import FileSystemVault

ORIGIN = "https://img.example.com"
API_URL = f"{ORIGIN}/api/v1"


# =============================================================================
# Fake image host
# =============================================================================


def _multipart_file(request: httpx.Request) -> tuple[str, bytes]:
    """Return (filename, content) of the "file" part of a multipart body."""
    boundary = request.headers["content-type"].split("boundary=")[1].encode()
    for part in request.content.split(b"--" + boundary):
        head, _sep, body = part.partition(b"\r\n\r\n")
        if b'name="file"' in head:
            match = re.search(rb'filename="([^"]*)"', head)
            filename = match.group(1).decode() if match else ""
            return filename, body[:-2] if body.endswith(b"\r\n") else body
    raise AssertionError("no file part in upload")


class FakeLsky:
    """In-memory Lsky Pro server, served through httpx.MockTransport."""

    def __init__(self, per_page: int = 2) -> None:
        self.valid_token = "token-1"
        self.password = "secret"
        self.per_page = per_page
        self.images: dict[str, dict[str, Any]] = {}  # key -> item
        self.blobs: dict[str, bytes] = {}  # public url -> content
        self.requests: list[httpx.Request] = []
        self.token_requests = 0
        self.fail_uploads: set[str] = set()  # original names that fail
        self.fail_deletes: set[str] = set()  # keys that fail
        self.uploaded_names: list[str] = []
        self._counter = 0

    def add_image(self, name: str, content: bytes = b"remote-bytes") -> dict[str, Any]:
        self._counter += 1
        key = f"key{self._counter}"
        url = f"{ORIGIN}/i/{name}"
        item = {
            "key": key,
            "name": name,
            "origin_name": name,
            "pathname": f"i/{name}",
            "size": len(content) / 1024,
            "links": {"url": url, "thumbnail_url": f"{url}!thumb"},
        }
        self.images[key] = item
        self.blobs[url] = content
        return item

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "GET" and path.startswith("/i/"):
            content = self.blobs.get(str(request.url))
            if content is None:
                return httpx.Response(404, text="Not Found")
            return httpx.Response(200, content=content)

        if request.method == "POST" and path == "/api/v1/tokens":
            self.token_requests += 1
            body = json.loads(request.content)
            if body.get("password") != self.password:
                return httpx.Response(
                    401, json={"status": False, "message": "Invalid credentials"}
                )
            return httpx.Response(
                200, json={"status": True, "data": {"token": self.valid_token}}
            )

        if request.headers.get("Authorization") != f"Bearer {self.valid_token}":
            return httpx.Response(401, json={"status": False, "message": "Unauthenticated."})

        if request.method == "POST" and path == "/api/v1/upload":
            filename, content = _multipart_file(request)
            self.uploaded_names.append(filename)
            if any(name in filename for name in self.fail_uploads):
                return httpx.Response(500, text="storage full")
            item = self.add_image(filename, content)
            return httpx.Response(200, json={"status": True, "data": item})

        if request.method == "GET" and path == "/api/v1/images":
            page = int(request.url.params.get("page", "1"))
            keys = list(self.images)
            last_page = max(1, math.ceil(len(keys) / self.per_page))
            start = (page - 1) * self.per_page
            items = [self.images[k] for k in keys[start : start + self.per_page]]
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "data": {"current_page": page, "last_page": last_page, "data": items},
                },
            )

        if request.method == "DELETE" and path.startswith("/api/v1/images/"):
            key = path.rsplit("/", 1)[-1]
            if key in self.fail_deletes:
                return httpx.Response(500, text="delete failed")
            item = self.images.pop(key, None)
            if item is None:
                return httpx.Response(404, json={"status": False, "message": "Not found"})
            self.blobs.pop(item["links"]["url"], None)
            return httpx.Response(200, json={"status": True, "message": "deleted"})

        return httpx.Response(404, text="Unknown endpoint")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def origin() -> str:
    """Return the fake image host origin."""
    return ORIGIN


@pytest.fixture
def fake_server() -> FakeLsky:
    """Return an empty fake image host."""
    return FakeLsky()


@pytest.fixture
def server_config() -> ServerConfig:
    """Return server settings matching the fake host's credentials."""
    return ServerConfig(url=API_URL, email="me@example.com", password="secret")


@pytest.fixture
def client(fake_server: FakeLsky, server_config: ServerConfig) -> LskyClient:
    """Return a client wired to the fake host, with pacing disabled."""
    return LskyClient(
        server_config,
        PacingConfig(list_page_delay=0, delete_delay=0),
        http_client=httpx.AsyncClient(transport=fake_server.transport()),
    )


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    """Return an empty vault directory."""
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def vault(vault_dir: Path) -> FileSystemVault:
    """Return a store over the vault directory."""
    return FileSystemVault(vault_dir)
