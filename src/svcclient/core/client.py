"""Non-blocking request/response engine."""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Any, Optional, Union
from urllib.parse import urljoin, urlparse

import aiohttp

from ..http.protocols import (
    QueryEncoder,
    RequestFilter,
    StreamDeserializer,
    StreamSerializer,
    Transport,
    TransportRequest,
    TransportResponse,
)
from ..http.serializers import JsonStreamSerializer, encode_query
from ..http.transport import AiohttpTransport
from ..models.config import ClientConfig, CredentialsConfig, HttpMethod
from ..models.errors import ProtocolError, RequestTimeoutError
from .classifier import ErrorClassifier
from .context import CallContext, ErrorCallback, SuccessCallback
from .timeout import TimeoutGuard

logger = logging.getLogger(__name__)

# Chunk size for each read of the response body
BUFFER_SIZE = 4096


def _parse_method(method: Union[str, HttpMethod, None]) -> HttpMethod:
    if not method:
        raise ValueError("HTTP method is required")
    if isinstance(method, HttpMethod):
        return method
    try:
        return HttpMethod(method.upper())
    except ValueError:
        raise ValueError(f"Unsupported HTTP method: {method!r}") from None


class AsyncServiceClient:
    """
    Callback-driven service client.

    Each call runs as its own task through the stages
    dispatch -> (body write ->) response -> read -> outcome, guarded by a
    fixed deadline. Exactly one of on_success / on_error fires per call.

    Example:
        config = ClientConfig(base_url="https://api.example.com", timeout=10)

        async with AsyncServiceClient(config) as client:
            client.send(
                "GET", "/items", {"id": 7},
                on_success=lambda item: print(item),
                on_error=lambda response, error: print(error),
                response_type=Item,
            )

            # or, awaiting the outcome
            item = await client.request("GET", "/items", {"id": 7}, response_type=Item)
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Optional[Transport] = None,
        serializer: Optional[StreamSerializer] = None,
        deserializer: Optional[StreamDeserializer] = None,
        query_encoder: Optional[QueryEncoder] = None,
        request_filter: Optional[RequestFilter] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration (defaults to ClientConfig())
            transport: Transport to send requests through. When None, an
                AiohttpTransport is created and owned by the client.
            serializer: Writes request bodies (defaults to JSON)
            deserializer: Reads response bodies (defaults to JSON)
            query_encoder: Encodes GET/DELETE payloads into the query string
            request_filter: Hook called with every request before transmission
        """
        self.config = config or ClientConfig()
        codec = JsonStreamSerializer()
        self._serializer: StreamSerializer = serializer or codec
        self._deserializer: StreamDeserializer = deserializer or codec
        self._query_encoder: QueryEncoder = query_encoder or encode_query
        self.request_filter = request_filter
        self.credentials = self.config.credentials.model_copy()

        self._transport = transport
        self._owns_transport = transport is None
        self._classifier = ErrorClassifier(self._deserializer)

    async def __aenter__(self) -> AsyncServiceClient:
        """Enter async context and open the owned transport."""
        if self._transport is None:
            transport = AiohttpTransport(
                proxy=self.config.proxy,
                user_agent=self.config.user_agent,
            )
            await transport.__aenter__()
            self._transport = transport
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context and close the owned transport."""
        if self._owns_transport and isinstance(self._transport, AiohttpTransport):
            await self._transport.__aexit__(exc_type, exc_val, exc_tb)
            self._transport = None

    @property
    def content_type(self) -> str:
        return self.config.content_type

    def set_credentials(self, username: str, password: str) -> None:
        """Set the username/password used to answer an authentication challenge."""
        self.credentials = CredentialsConfig(username=username, password=password)

    def send(
        self,
        method: Union[str, HttpMethod],
        url: str,
        payload: Any,
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        *,
        response_type: Any = Any,
    ) -> CallContext:
        """
        Dispatch a call without waiting for it.

        Args:
            method: HTTP verb
            url: Absolute URL, or a path resolved against config.base_url
            payload: Request object; query-encoded for GET/DELETE, the body otherwise
            on_success: Called with the decoded response
            on_error: Called with (best-effort response or None, exception)
            response_type: Type the response body is decoded into

        Returns:
            The call's CallContext, for inspection or await ctx.wait()

        Raises:
            ValueError: If method is empty or not a supported verb, or if a
                GET/DELETE payload cannot be query-encoded
            RuntimeError: If called outside a running event loop or before
                the client's transport is open
        """
        http_method = _parse_method(method)
        loop = asyncio.get_running_loop()
        if self._transport is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        request_url = self._resolve_url(url)
        if not http_method.has_body and payload is not None:
            query = self._query_encoder(payload)
            if query:
                request_url += ("&" if "?" in request_url else "?") + query

        ctx: CallContext = CallContext(
            method=http_method,
            url=request_url,
            payload=payload,
            response_type=response_type,
            on_success=on_success,
            on_error=on_error,
        )
        ctx.transport_handle = self._transport.create_request(http_method.value, request_url)

        ctx.timer = TimeoutGuard(ctx, self.config.effective_timeout, loop)
        ctx.timer.arm()
        ctx.task = loop.create_task(self._run(ctx))

        logger.debug(f"Dispatched {http_method.value} {request_url}")
        return ctx

    def get(self, url: str, payload: Any = None, on_success=None, on_error=None, **kwargs: Any) -> CallContext:
        return self.send(HttpMethod.GET, url, payload, on_success, on_error, **kwargs)

    def post(self, url: str, payload: Any = None, on_success=None, on_error=None, **kwargs: Any) -> CallContext:
        return self.send(HttpMethod.POST, url, payload, on_success, on_error, **kwargs)

    def put(self, url: str, payload: Any = None, on_success=None, on_error=None, **kwargs: Any) -> CallContext:
        return self.send(HttpMethod.PUT, url, payload, on_success, on_error, **kwargs)

    def patch(self, url: str, payload: Any = None, on_success=None, on_error=None, **kwargs: Any) -> CallContext:
        return self.send(HttpMethod.PATCH, url, payload, on_success, on_error, **kwargs)

    def delete(self, url: str, payload: Any = None, on_success=None, on_error=None, **kwargs: Any) -> CallContext:
        return self.send(HttpMethod.DELETE, url, payload, on_success, on_error, **kwargs)

    async def request(
        self,
        method: Union[str, HttpMethod],
        url: str,
        payload: Any = None,
        *,
        response_type: Any = Any,
    ) -> Any:
        """
        Dispatch a call and await its outcome.

        Returns:
            The decoded response

        Raises:
            The exception delivered to the error continuation
            (WebServiceError, RequestTimeoutError, AuthenticationFailure, ...)
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def on_success(value: Any) -> None:
            if not future.done():
                future.set_result(value)

        def on_error(value: Any, error: BaseException) -> None:
            if future.done():
                return
            if isinstance(error, asyncio.CancelledError):
                future.cancel()
            else:
                future.set_exception(error)

        self.send(method, url, payload, on_success, on_error, response_type=response_type)
        return await future

    def _resolve_url(self, url: str) -> str:
        if self.config.base_url and not urlparse(url).scheme:
            return urljoin(self.config.base_url.rstrip("/") + "/", url.lstrip("/"))
        return url

    def _prepare(self, ctx: CallContext, request: TransportRequest) -> None:
        for name, value in self.config.headers.items():
            request.headers.setdefault(name, value)
        request.headers["Accept"] = f"{self.content_type}, */*"
        if ctx.has_body:
            request.headers["Content-Type"] = self.content_type

        if self.request_filter is not None:
            self.request_filter(request)

    async def _run(self, ctx: CallContext) -> None:
        try:
            await self._transmit(ctx)
        except asyncio.CancelledError as exc:
            if not ctx.timed_out:
                ctx.guard.increment()
                ctx.handle_error(None, exc)
                raise
            await self._classifier.classify(self._timeout_error(ctx, exc), ctx)
        except Exception as exc:
            if ctx.timed_out and not isinstance(exc, RequestTimeoutError):
                if isinstance(exc, ProtocolError):
                    exc.response.release()
                exc = self._timeout_error(ctx, exc)
            await self._classifier.classify(exc, ctx)
        finally:
            if ctx.timer is not None:
                ctx.timer.disarm()
            ctx.dispose()

    def _timeout_error(self, ctx: CallContext, cause: BaseException) -> RequestTimeoutError:
        error = RequestTimeoutError(ctx.url, ctx.timer.timeout if ctx.timer else None)
        error.__cause__ = cause
        return error

    async def _transmit(self, ctx: CallContext) -> None:
        request = ctx.transport_handle
        if request is None:
            raise RuntimeError(f"No transport request for {ctx.url}")
        self._prepare(ctx, request)

        if ctx.has_body:
            self._write_body(ctx, request)

        try:
            response = await self._begin_response(ctx, request)
        except Exception as exc:
            ctx.request_count += 1
            if ctx.request_count == 1 and self._should_authenticate(exc):
                try:
                    self._rebuild_for_auth(ctx, exc)
                except Exception as rebuild_error:
                    logger.debug(f"Could not rebuild {ctx.url} for authentication: {rebuild_error!r}")
                    raise exc from None
                await self._transmit(ctx)
                return
            raise

        await self._read_response(ctx, response)

    def _write_body(self, ctx: CallContext, request: TransportRequest) -> None:
        stream = request.open_body()
        try:
            self._serializer.serialize(None, ctx.payload, stream)
        finally:
            stream.close()

    async def _begin_response(self, ctx: CallContext, request: TransportRequest) -> TransportResponse:
        response = await request.get_response()
        if response.status >= 400:
            raise ProtocolError(response)
        logger.debug(f"{ctx.method.value} {ctx.url} -> {response.status}")
        return response

    def _should_authenticate(self, error: BaseException) -> bool:
        return (
            isinstance(error, ProtocolError)
            and error.status_code == 401
            and self.credentials.is_configured
        )

    def _rebuild_for_auth(self, ctx: CallContext, challenge: ProtocolError) -> None:
        if self._transport is None:
            raise RuntimeError("Transport closed")

        auth = aiohttp.BasicAuth(self.credentials.username or "", self.credentials.password or "")
        request = self._transport.create_request(ctx.method.value, ctx.url)
        request.headers["Authorization"] = auth.encode()

        challenge.response.release()
        ctx.transport_handle = request
        ctx.retry_attempted = True
        logger.info(f"Authentication challenge from {ctx.url}, retrying with credentials")

    async def _read_response(self, ctx: CallContext, response: TransportResponse) -> None:
        buffer = ctx.response_buffer
        if buffer is None:
            raise RuntimeError(f"Response buffer for {ctx.url} already released")

        try:
            while True:
                chunk = await response.read(BUFFER_SIZE)
                if not chunk:
                    break
                buffer.write(chunk)

            if ctx.guard.increment() != 0:
                raise RequestTimeoutError(ctx.url, ctx.timer.timeout if ctx.timer else None)

            buffer.seek(0)
            try:
                value = self._deserializer.deserialize(ctx.response_type, buffer)
            except Exception as exc:
                logger.debug(f"Error reading response from {ctx.url}: {exc}")
                ctx.handle_error(None, exc)
                return
        finally:
            response.release()

        ctx.handle_success(value)
