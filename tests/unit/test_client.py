"""Unit tests for the Lsky Pro client."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from lskysync.client import LskyClient
from lskysync.config import PacingConfig, ServerConfig
from lskysync.errors import (
    ConfigurationError,
    ProtocolError,
    TransportError,
    UnauthorizedError,
)


def _client(handler: Any, config: ServerConfig, **kwargs: Any) -> LskyClient:
    return LskyClient(
        config,
        PacingConfig(list_page_delay=0, delete_delay=0),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


class TestAcquireToken:
    """Tests for token acquisition."""

    @pytest.mark.asyncio
    async def test_stores_token_and_notifies(self, fake_server, server_config) -> None:
        """Test the token is set on the config and passed to the callback."""
        callback = MagicMock()
        client = _client(fake_server.handler, server_config, on_token_refreshed=callback)

        token = await client.acquire_token()

        assert token == "token-1"
        assert server_config.token == "token-1"
        callback.assert_called_once_with("token-1")

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_request(self, server_config) -> None:
        """Test single-flight: N concurrent callers cause one /tokens request."""
        calls = 0
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            await release.wait()
            return httpx.Response(200, json={"status": True, "data": {"token": "shared"}})

        client = _client(handler, server_config)

        waiters = [asyncio.create_task(client.acquire_token()) for _ in range(5)]
        await asyncio.sleep(0.01)
        release.set()
        results = await asyncio.gather(*waiters)

        assert calls == 1
        assert results == ["shared"] * 5

    @pytest.mark.asyncio
    async def test_new_request_after_previous_finished(self, fake_server, server_config) -> None:
        client = _client(fake_server.handler, server_config)

        await client.acquire_token()
        await client.acquire_token()

        assert fake_server.token_requests == 2

    @pytest.mark.asyncio
    async def test_shared_failure_reaches_every_waiter(self, server_config) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            return httpx.Response(401, json={"status": False, "message": "nope"})

        client = _client(handler, server_config)

        results = await asyncio.gather(
            client.acquire_token(), client.acquire_token(), return_exceptions=True
        )

        assert all(isinstance(r, UnauthorizedError) for r in results)
        assert "nope" in str(results[0])

    @pytest.mark.asyncio
    async def test_missing_credentials(self) -> None:
        client = _client(lambda r: httpx.Response(500), ServerConfig(url="https://x.org"))

        with pytest.raises(ConfigurationError):
            await client.acquire_token()

    @pytest.mark.asyncio
    async def test_missing_env_password(self, monkeypatch) -> None:
        monkeypatch.delenv("LSKY_TEST_PASSWORD", raising=False)
        config = ServerConfig(url="https://x.org", email="a@b.c", password="env:LSKY_TEST_PASSWORD")
        client = _client(lambda r: httpx.Response(500), config)

        with pytest.raises(ConfigurationError, match="LSKY_TEST_PASSWORD"):
            await client.acquire_token()

    @pytest.mark.asyncio
    async def test_response_without_token(self, server_config) -> None:
        client = _client(
            lambda r: httpx.Response(200, json={"status": True, "data": {}}), server_config
        )

        with pytest.raises(ProtocolError):
            await client.acquire_token()

    @pytest.mark.asyncio
    async def test_server_error(self, server_config) -> None:
        client = _client(lambda r: httpx.Response(503), server_config)

        with pytest.raises(TransportError) as exc_info:
            await client.acquire_token()

        assert exc_info.value.status_code == 503


class TestAuthorizedRequest:
    """Tests for the authorized request path."""

    @pytest.mark.asyncio
    async def test_acquires_token_when_missing(self, client, fake_server) -> None:
        response = await client.authorized_request("GET", f"{client.base_url}/images")

        assert response.status_code == 200
        assert fake_server.token_requests == 1
        assert fake_server.requests[-1].headers["Authorization"] == "Bearer token-1"
        assert fake_server.requests[-1].headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_stale_token_refreshed_once(self, client, fake_server, server_config) -> None:
        """Test a 401 triggers one refresh and one retry."""
        server_config.token = "stale"

        response = await client.authorized_request("GET", f"{client.base_url}/images")

        assert response.status_code == 200
        assert fake_server.token_requests == 1
        paths = [(r.method, r.url.path) for r in fake_server.requests]
        assert paths == [
            ("GET", "/api/v1/images"),
            ("POST", "/api/v1/tokens"),
            ("GET", "/api/v1/images"),
        ]

    @pytest.mark.asyncio
    async def test_second_401_raises(self, server_config) -> None:
        tokens = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal tokens
            if request.url.path.endswith("/tokens"):
                tokens += 1
                return httpx.Response(200, json={"status": True, "data": {"token": "t"}})
            return httpx.Response(401)

        client = _client(handler, server_config)

        with pytest.raises(UnauthorizedError):
            await client.authorized_request("GET", f"{client.base_url}/images")

        assert tokens == 2

    @pytest.mark.asyncio
    async def test_network_error_becomes_transport_error(self, server_config) -> None:
        server_config.token = "t"

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        client = _client(handler, server_config)

        with pytest.raises(TransportError) as exc_info:
            await client.authorized_request("GET", f"{client.base_url}/images")

        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)


class TestUpload:
    """Tests for upload_binary."""

    @pytest.mark.asyncio
    async def test_returns_url(self, client, fake_server, origin) -> None:
        url = await client.upload_binary(b"data", "note-1.png", "image/png")

        assert url == f"{origin}/i/note-1.png"
        upload = fake_server.requests[-1]
        assert b'name="strategy_id"' in upload.content
        assert b"Content-Type: image/png" in upload.content

    @pytest.mark.asyncio
    async def test_http_error_carries_body(self, client, fake_server) -> None:
        fake_server.fail_uploads.add("bad")

        with pytest.raises(TransportError) as exc_info:
            await client.upload_binary(b"data", "bad.png", "image/png")

        assert exc_info.value.status_code == 500
        assert exc_info.value.detail == "storage full"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"status": False, "message": "quota exceeded"},
            {"status": True, "data": {"links": {}}},
            ["not", "an", "object"],
        ],
    )
    async def test_malformed_response(self, server_config, payload: Any) -> None:
        server_config.token = "t"
        client = _client(lambda r: httpx.Response(200, json=payload), server_config)

        with pytest.raises(ProtocolError):
            await client.upload_binary(b"data", "a.png", "image/png")

    @pytest.mark.asyncio
    async def test_non_json_response(self, server_config) -> None:
        server_config.token = "t"
        client = _client(lambda r: httpx.Response(200, text="<html>"), server_config)

        with pytest.raises(ProtocolError, match="Invalid JSON"):
            await client.upload_binary(b"data", "a.png", "image/png")


class TestListAndDelete:
    """Tests for inventory listing and deletion."""

    @pytest.mark.asyncio
    async def test_lists_every_page_in_order(self, client, fake_server) -> None:
        for name in ("a.png", "b.png", "c.png", "d.png", "e.png"):
            fake_server.add_image(name)

        items = await client.list_all_images()

        assert [i.name for i in items] == ["a.png", "b.png", "c.png", "d.png", "e.png"]
        pages = [r.url.params["page"] for r in fake_server.requests if r.url.path.endswith("/images")]
        assert pages == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_empty_inventory(self, client) -> None:
        assert await client.list_all_images() == []

    @pytest.mark.asyncio
    async def test_pacing_between_pages_only(self, client, fake_server, monkeypatch) -> None:
        sleeps: list[float] = []

        async def fake_sleep(delay: float) -> None:
            sleeps.append(delay)

        for name in ("a.png", "b.png", "c.png"):
            fake_server.add_image(name)
        client.pacing = PacingConfig(list_page_delay=0.08)
        monkeypatch.setattr("lskysync.client.asyncio.sleep", fake_sleep)

        await client.list_all_images()

        assert sleeps == [0.08]

    @pytest.mark.asyncio
    async def test_malformed_page(self, server_config) -> None:
        server_config.token = "t"
        client = _client(
            lambda r: httpx.Response(200, json={"status": True, "data": {"data": None}}),
            server_config,
        )

        with pytest.raises(ProtocolError):
            await client.list_all_images()

    @pytest.mark.asyncio
    async def test_delete(self, client, fake_server) -> None:
        item = fake_server.add_image("a.png")

        await client.delete_image_by_key(item["key"])

        assert fake_server.images == {}

    @pytest.mark.asyncio
    async def test_delete_failure(self, client, fake_server) -> None:
        item = fake_server.add_image("a.png")
        fake_server.fail_deletes.add(item["key"])

        with pytest.raises(TransportError):
            await client.delete_image_by_key(item["key"])


class TestDownload:
    """Tests for download_binary."""

    @pytest.mark.asyncio
    async def test_fetches_without_auth(self, client, fake_server) -> None:
        item = fake_server.add_image("a.png", b"pixels")

        data = await client.download_binary(item["links"]["url"])

        assert data == b"pixels"
        assert "Authorization" not in fake_server.requests[-1].headers
        assert fake_server.token_requests == 0

    @pytest.mark.asyncio
    async def test_missing_image(self, client, origin) -> None:
        with pytest.raises(TransportError) as exc_info:
            await client.download_binary(f"{origin}/i/gone.png")

        assert exc_info.value.status_code == 404
