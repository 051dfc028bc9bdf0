"""Lsky Pro API client.

Wraps the four endpoints the sync workflows need:

- ``POST /tokens``        exchange email/password for a bearer token
- ``POST /upload``        multipart image upload
- ``GET /images?page=N``  paginated inventory
- ``DELETE /images/{key}``

Every JSON response is an envelope ``{"status": bool, "message": str,
"data": ...}``. A response that parses but lacks the expected shape raises
ProtocolError; an HTTP or network failure raises TransportError.

Token refresh is single-flight: concurrent callers that need a token share
one in-flight authentication request.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import ValidationError

from lskysync.config import PacingConfig, ServerConfig
from lskysync.constants import DEFAULT_USER_AGENT
from lskysync.errors import (
    ConfigurationError,
    ProtocolError,
    TransportError,
    UnauthorizedError,
)
from lskysync.types import RemoteImageItem

TokenCallback = Callable[[str], None]


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _server_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return fallback


def _response_detail(response: httpx.Response) -> str:
    return response.text.strip()


class LskyClient:
    """Authenticated async client for a Lsky Pro image host.

    Args:
        config: Server settings; ``token`` is updated in place on refresh
        pacing: Delays between sequential requests
        on_token_refreshed: Called with the new token after authentication,
            so the caller can persist it
        http_client: Optional preconfigured httpx client (not closed by us)
    """

    def __init__(
        self,
        config: ServerConfig,
        pacing: PacingConfig | None = None,
        on_token_refreshed: TokenCallback | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.pacing = pacing or PacingConfig()
        self.on_token_refreshed = on_token_refreshed
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout,
            headers={"User-Agent": DEFAULT_USER_AGENT},
            follow_redirects=True,
        )
        self._token_task: asyncio.Task[str] | None = None

    @property
    def base_url(self) -> str:
        return self.config.base_url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> LskyClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(detail=f"{type(e).__name__}: {e}") from e

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def _request_token(self) -> str:
        if not self.config.email or not self.config.password:
            raise ConfigurationError("Email and password are required to obtain a token")
        try:
            password = self.config.get_resolved_password()
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        logger.debug(f"Requesting token from {self.base_url}/tokens")
        response = await self._send(
            "POST",
            f"{self.base_url}/tokens",
            json={"email": self.config.email, "password": password},
            headers={"Accept": "application/json"},
        )
        if response.status_code == 401:
            payload = _json_or_none(response)
            raise UnauthorizedError(_server_message(payload, "Invalid credentials"))
        if not response.is_success:
            raise TransportError(status_code=response.status_code)

        payload = _json_or_none(response)
        data = payload.get("data") if isinstance(payload, dict) else None
        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(payload, dict) or not payload.get("status") or not token:
            raise ProtocolError(_server_message(payload, "no token in response"))

        self.config.token = str(token)
        logger.info("Obtained new API token")
        if self.on_token_refreshed is not None:
            self.on_token_refreshed(self.config.token)
        return self.config.token

    def _clear_token_task(self, task: asyncio.Task[str]) -> None:
        if self._token_task is task:
            self._token_task = None
        if not task.cancelled():
            # Waiters get the exception through shield(); mark it retrieved
            task.exception()

    async def acquire_token(self) -> str:
        """Authenticate with the stored credentials and return a new token.

        If an authentication request is already in flight, wait for it and
        share its result instead of sending a second one.

        Raises:
            ConfigurationError: If credentials are missing
            UnauthorizedError: If the server rejects the credentials
            TransportError: On HTTP or network failure
            ProtocolError: If the response carries no token
        """
        task = self._token_task
        if task is None:
            task = asyncio.ensure_future(self._request_token())
            task.add_done_callback(self._clear_token_task)
            self._token_task = task
        else:
            logger.debug("Token request already in flight, waiting for it")
        # shield: a cancelled waiter must not cancel the shared request
        return await asyncio.shield(task)

    async def authorized_request(
        self,
        method: str,
        url: str,
        allow_retry: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request with the bearer token attached.

        On a 401 response the token is refreshed once and the request is
        re-issued with retries disabled.

        Raises:
            UnauthorizedError: If the request is still unauthorized
            TransportError: On network failure
        """
        if not self.config.token:
            await self.acquire_token()

        headers = {"Accept": "application/json", **kwargs.pop("headers", {})}
        headers["Authorization"] = f"Bearer {self.config.token}"
        response = await self._send(method, url, headers=headers, **kwargs)

        if response.status_code == 401:
            if not allow_retry:
                raise UnauthorizedError(
                    f"{method} {url} unauthorized after token refresh"
                )
            logger.info("Token rejected, refreshing and retrying once")
            await self.acquire_token()
            return await self.authorized_request(
                method, url, allow_retry=False, headers=headers, **kwargs
            )
        return response

    # -------------------------------------------------------------------------
    # Images
    # -------------------------------------------------------------------------

    async def upload_binary(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        strategy_id: int | None = None,
    ) -> str:
        """Upload an image and return its public URL.

        Raises:
            TransportError: On a non-success status (with the response body)
            ProtocolError: If the response has no usable URL
        """
        if strategy_id is None:
            strategy_id = self.config.strategy_id
        response = await self.authorized_request(
            "POST",
            f"{self.base_url}/upload",
            files={"file": (filename, data, mime_type)},
            data={"strategy_id": str(strategy_id)},
        )
        if not response.is_success:
            raise TransportError(
                status_code=response.status_code, detail=_response_detail(response)
            )

        payload = _json_or_none(response)
        if not isinstance(payload, dict):
            raise ProtocolError("Invalid JSON from server")
        data_block = payload.get("data")
        links = data_block.get("links") if isinstance(data_block, dict) else None
        url = links.get("url") if isinstance(links, dict) else None
        if not payload.get("status") or not url:
            raise ProtocolError(_server_message(payload, "upload failed"))

        logger.debug(f"Uploaded {filename} -> {url}")
        return str(url)

    async def _list_page(self, page: int) -> tuple[list[RemoteImageItem], int]:
        response = await self.authorized_request(
            "GET", f"{self.base_url}/images", params={"page": page}
        )
        if not response.is_success:
            raise TransportError(status_code=response.status_code)

        payload = _json_or_none(response)
        data = payload.get("data") if isinstance(payload, dict) else None
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ProtocolError(
                _server_message(payload, f"Unexpected image list response on page {page}")
            )
        try:
            parsed = [RemoteImageItem.model_validate(item) for item in items]
        except ValidationError as e:
            raise ProtocolError(f"Malformed image item on page {page}: {e}") from e

        last_page = data.get("last_page") or page
        try:
            last_page = int(last_page)
        except (TypeError, ValueError):
            last_page = page
        return parsed, last_page

    async def list_all_images(self) -> list[RemoteImageItem]:
        """Fetch the full inventory, page by page, in page order."""
        images: list[RemoteImageItem] = []
        page = 1
        while True:
            items, last_page = await self._list_page(page)
            images.extend(items)
            logger.debug(f"Listed page {page}/{last_page}: {len(items)} images")
            page += 1
            if page > last_page:
                break
            await asyncio.sleep(self.pacing.list_page_delay)
        return images

    async def delete_image_by_key(self, key: str) -> None:
        """Delete one image by its key.

        Raises:
            TransportError: On a non-success status
        """
        response = await self.authorized_request(
            "DELETE", f"{self.base_url}/images/{quote(key, safe='')}"
        )
        if not response.is_success:
            raise TransportError(status_code=response.status_code)

    async def download_binary(self, url: str) -> bytes:
        """Fetch a public image URL.

        Raises:
            TransportError: On a non-success status or network failure
        """
        response = await self._send("GET", url)
        if not response.is_success:
            raise TransportError(status_code=response.status_code)
        return response.content
