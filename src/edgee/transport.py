"""Request carriers for the chat-completions endpoint."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

import httpx

from edgee.errors import RequestError, TransportError
from edgee.request import COMPLETIONS_PATH

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Sends request bodies to the completions endpoint.

    ``send`` returns the decoded JSON of a buffered response.  ``stream``
    is an async context manager yielding the raw body as byte chunks; the
    underlying connection is released when the context exits.
    Implementations raise :class:`RequestError` for non-success statuses
    and :class:`TransportError` for network failures.
    """

    @abstractmethod
    async def send(self, body: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    def stream(self, body: dict[str, Any]) -> AbstractAsyncContextManager[AsyncIterator[bytes]]:
        ...

    async def aclose(self) -> None:
        """Release any pooled connections."""


class HttpxTransport(Transport):
    """Transport over a shared ``httpx.AsyncClient``.

    Args:
        base_url: Gateway root the completions path is appended to.
        api_key: Sent as a bearer token.
        timeout: Overall request timeout in seconds.
        client: Pre-built client to use instead of creating one; it is
            not closed by :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 600.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=30),
        )
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @property
    def url(self) -> str:
        return f"{self.base_url}{COMPLETIONS_PATH}"

    async def send(self, body: dict[str, Any]) -> dict[str, Any]:
        logger.debug(f"POST {self.url} (buffered, model={body.get('model')})")
        try:
            resp = await self._client.post(self.url, json=body, headers=self._headers)
        except httpx.TransportError as e:
            raise TransportError(f"Request to {self.url} failed: {e}") from e

        if resp.is_error:
            raise RequestError(resp.status_code, resp.text)
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"Response body is not valid JSON: {e}") from e

    @asynccontextmanager
    async def stream(self, body: dict[str, Any]) -> AsyncIterator[AsyncIterator[bytes]]:
        logger.debug(f"POST {self.url} (streaming, model={body.get('model')})")
        request = self._client.build_request("POST", self.url, json=body, headers=self._headers)
        try:
            resp = await self._client.send(request, stream=True)
        except httpx.TransportError as e:
            raise TransportError(f"Request to {self.url} failed: {e}") from e

        try:
            if resp.is_error:
                try:
                    error_body = (await resp.aread()).decode(errors="replace")
                except httpx.TransportError as e:
                    raise TransportError(f"Failed to read error body: {e}") from e
                raise RequestError(resp.status_code, error_body)
            yield _read_body(resp)
        finally:
            await resp.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


async def _read_body(resp: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in resp.aiter_bytes():
            yield chunk
    except httpx.TransportError as e:
        raise TransportError(f"Stream interrupted: {e}") from e
