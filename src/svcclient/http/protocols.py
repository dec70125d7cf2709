"""Protocol definitions for the transport and wire-format abstractions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, BinaryIO, Callable, Optional, Protocol


class TransportResponse(Protocol):
    """
    Live response handle returned by TransportRequest.get_response().

    Attributes:
        status: HTTP status code (200, 404, etc.)
        reason: HTTP reason phrase
        headers: Response headers
        url: Final URL after any redirects
    """

    status: int
    reason: str
    headers: Mapping[str, str]
    url: str

    async def read(self, n: int) -> bytes:
        """
        Read up to n bytes of the response body.

        Returns:
            The next chunk, or b"" at end of stream
        """
        ...

    def release(self) -> None:
        """Release the underlying connection. Safe to call more than once."""
        ...


class TransportRequest(Protocol):
    """
    In-flight request handle.

    The headers mapping and timeout are mutable until get_response() is
    awaited, so a request filter can customize them.
    """

    method: str
    url: str
    headers: dict[str, str]
    timeout: Optional[float]

    def open_body(self) -> BinaryIO:
        """Open the outbound body stream. Closing it finishes the body."""
        ...

    async def get_response(self) -> TransportResponse:
        """
        Transmit the request and begin receiving the response.

        Returns:
            TransportResponse once status and headers have arrived
        """
        ...

    def abort(self) -> None:
        """Abort the in-flight exchange."""
        ...


class Transport(Protocol):
    """
    Protocol for request transports.

    This abstraction allows for:
    - Scripted implementations in tests
    - Different backends (aiohttp, httpx, etc.)
    """

    def create_request(self, method: str, url: str) -> TransportRequest:
        """Create a request handle for method and url without sending it."""
        ...


class StreamSerializer(Protocol):
    """Writes the wire representation of a value to a binary stream."""

    def serialize(self, target_type: Any, value: Any, stream: BinaryIO) -> None: ...


class StreamDeserializer(Protocol):
    """Reads a typed value from a binary stream."""

    def deserialize(self, target_type: Any, stream: BinaryIO) -> Any: ...


# Per-client hook invoked with every request before transmission
RequestFilter = Callable[[TransportRequest], None]

# Encodes a payload into a query string (without the leading "?")
QueryEncoder = Callable[[Any], str]
