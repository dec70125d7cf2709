"""Single funnel mapping call failures to error outcomes."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Optional

from ..http.protocols import StreamDeserializer, TransportResponse
from ..models.errors import (
    NEGOTIATION_ERRORS,
    AuthenticationFailure,
    ProtocolError,
    RequestTimeoutError,
    WebServiceError,
)
from .context import CallContext

logger = logging.getLogger(__name__)

ERROR_BODY_CHUNK_SIZE = 4096


class ErrorClassifier:
    """
    Maps a failure into one of the error outcomes and delivers it.

    Branches, checked in order:
    1. ProtocolError: structured WebServiceError carrying the status code,
       with the error body decoded as the call's response type when possible
    2. Credential/certificate negotiation failure: AuthenticationFailure
       naming the target URL
    3. Anything else: the raw exception

    The error continuation is the terminal event for the call. classify()
    only raises when the call task is cancelled from outside while the error
    body is being read, after delivering that cancellation.
    """

    def __init__(self, deserializer: StreamDeserializer) -> None:
        self._deserializer = deserializer

    async def classify(self, error: BaseException, ctx: CallContext) -> None:
        if isinstance(error, ProtocolError):
            await self._handle_protocol_error(error, ctx)
            return

        ctx.guard.increment()

        if isinstance(error, NEGOTIATION_ERRORS):
            wrapped = AuthenticationFailure(ctx.url, error)
            logger.debug(f"AuthenticationFailure: {wrapped}")
            ctx.handle_error(None, wrapped)
            return

        logger.debug(f"Exception reading response for {ctx.method.value} {ctx.url}: {error!r}")
        ctx.handle_error(None, error)

    async def _handle_protocol_error(self, error: ProtocolError, ctx: CallContext) -> None:
        response = error.response
        logger.error(f"{ctx.method.value} {ctx.url} failed: {error}")
        logger.debug(f"Status Code : {error.status_code}")
        logger.debug(f"Status Description : {error.status_description}")

        # The guard stays unclaimed while the body is read so the deadline can still abort it
        body: Optional[bytes] = None
        read_error: Optional[BaseException] = None
        try:
            body = await _drain(response)
        except asyncio.CancelledError as exc:
            if not ctx.timed_out:
                ctx.guard.increment()
                ctx.handle_error(None, exc)
                raise
            read_error = exc
        except Exception as exc:
            read_error = exc
        finally:
            response.release()

        ctx.guard.increment()

        if ctx.timed_out:
            timeout_error = RequestTimeoutError(ctx.url, ctx.timer.timeout if ctx.timer else None)
            timeout_error.__cause__ = error
            ctx.handle_error(None, timeout_error)
            return

        fault = WebServiceError(error.status_description, status_code=error.status_code)
        if body is None:
            logger.debug(f"Could not read error response from {ctx.url}: {read_error!r}")
            fault.__cause__ = read_error
        else:
            try:
                fault.response_dto = self._deserializer.deserialize(ctx.response_type, io.BytesIO(body))
            except Exception as inner:
                logger.debug(f"Could not decode error response from {ctx.url}: {inner!r}")
                fault.__cause__ = inner

        ctx.handle_error(fault.response_dto, fault)


async def _drain(response: TransportResponse) -> bytes:
    chunks = []
    while True:
        chunk = await response.read(ERROR_BODY_CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)
