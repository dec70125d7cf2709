"""aiohttp-backed transport."""

from __future__ import annotations

import io
import logging
from collections.abc import Mapping
from types import TracebackType
from typing import BinaryIO, Optional

import aiohttp

logger = logging.getLogger(__name__)


class AiohttpResponse:
    """TransportResponse over a live aiohttp.ClientResponse."""

    def __init__(self, response: aiohttp.ClientResponse) -> None:
        self._response = response
        self.status: int = response.status
        self.reason: str = response.reason or ""
        self.headers: Mapping[str, str] = response.headers
        self.url: str = str(response.url)

    async def read(self, n: int) -> bytes:
        return await self._response.content.read(n)

    def release(self) -> None:
        self._response.release()

    def close(self) -> None:
        self._response.close()


class AiohttpRequest:
    """
    TransportRequest issued through a shared aiohttp.ClientSession.

    The body is buffered in memory by open_body() and sent when
    get_response() is awaited.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        proxy: Optional[str] = None,
    ) -> None:
        self._session = session
        self._proxy = proxy
        self.method = method
        self.url = url
        self.headers: dict[str, str] = {}
        # None leaves the deadline to the caller's timeout guard
        self.timeout: Optional[float] = None
        self._body: Optional[io.BytesIO] = None
        self._body_data: Optional[bytes] = None
        self._response: Optional[AiohttpResponse] = None
        self._aborted = False

    def open_body(self) -> BinaryIO:
        body = _BodyStream(self)
        self._body = body
        return body

    def _finish_body(self, data: bytes) -> None:
        self._body_data = data

    async def get_response(self) -> AiohttpResponse:
        if self._aborted:
            raise aiohttp.ClientConnectionError(f"Request to {self.url} was aborted")
        if self._body is not None and self._body_data is None:
            # Body stream never closed; send what was written
            self._body_data = self._body.getvalue()

        response = await self._session.request(
            self.method,
            self.url,
            data=self._body_data,
            headers=self.headers,
            proxy=self._proxy,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            allow_redirects=True,
        )
        self._response = AiohttpResponse(response)
        return self._response

    def abort(self) -> None:
        self._aborted = True
        if self._response is not None:
            logger.debug(f"Aborting response from {self.url}")
            self._response.close()


class _BodyStream(io.BytesIO):
    """In-memory body that hands its bytes to the request on close."""

    def __init__(self, request: AiohttpRequest) -> None:
        super().__init__()
        self._request = request

    def close(self) -> None:
        if not self.closed:
            self._request._finish_body(self.getvalue())
        super().close()


class AiohttpTransport:
    """
    Transport that issues requests through an aiohttp.ClientSession.

    Example:
        async with AiohttpTransport(user_agent="svcclient/1.0") as transport:
            request = transport.create_request("GET", "https://example.com/items")
            response = await request.get_response()
    """

    def __init__(
        self,
        proxy: Optional[str] = None,
        user_agent: Optional[str] = None,
        limit_per_host: int = 10,
    ) -> None:
        """
        Initialize the transport.

        Args:
            proxy: Proxy URL (http:// or https://)
            user_agent: Session-wide User-Agent header
            limit_per_host: Per-host connection limit
        """
        self._proxy = proxy
        self._user_agent = user_agent
        self._limit_per_host = limit_per_host
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._session.closed

    async def __aenter__(self) -> AiohttpTransport:
        """Enter async context and create session."""
        connector = aiohttp.TCPConnector(
            limit=100,
            limit_per_host=self._limit_per_host,
            ttl_dns_cache=300,
        )
        headers = {"User-Agent": self._user_agent} if self._user_agent else None
        self._session = aiohttp.ClientSession(connector=connector, headers=headers)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context and close session."""
        if self._session:
            await self._session.close()
            self._session = None

    def create_request(self, method: str, url: str) -> AiohttpRequest:
        if self._session is None:
            raise RuntimeError("Transport not initialized. Use 'async with' context manager.")
        return AiohttpRequest(self._session, method, url, proxy=self._proxy)
