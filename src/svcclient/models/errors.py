"""Error taxonomy for service calls."""

from __future__ import annotations

import ssl
from typing import TYPE_CHECKING, Any, Optional

import aiohttp

if TYPE_CHECKING:
    from ..http.protocols import TransportResponse


# Transport-level credential / certificate negotiation failures
NEGOTIATION_ERRORS = (ssl.SSLError, aiohttp.ClientSSLError)


class ServiceClientError(Exception):
    """Base class for errors raised or delivered by svcclient."""


class ProtocolError(ServiceClientError):
    """
    A well-formed response carrying a non-success status.

    Raised internally when response initiation sees a status >= 400. The
    response is attached so the classifier can decode the error body.
    """

    def __init__(self, response: TransportResponse) -> None:
        self.response = response
        self.status_code = response.status
        self.status_description = response.reason
        super().__init__(f"{response.status} {response.reason}")


class WebServiceError(ServiceClientError):
    """
    Structured fault delivered to the error continuation.

    Attributes:
        status_code: HTTP status code of the error response
        status_description: HTTP reason phrase
        response_dto: Error body decoded as the call's response type, if decodable
    """

    def __init__(
        self,
        status_description: str,
        status_code: int,
        response_dto: Any = None,
    ) -> None:
        super().__init__(status_description)
        self.status_description = status_description
        self.status_code = status_code
        self.response_dto = response_dto

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    def __repr__(self) -> str:
        return f"WebServiceError(status_code={self.status_code}, status_description={self.status_description!r})"


class AuthenticationFailure(ServiceClientError):
    """Credential or certificate negotiation with the remote host failed."""

    def __init__(self, url: str, error: BaseException) -> None:
        self.url = url
        super().__init__(f"Authentication with {url} failed: {error}")
        self.__cause__ = error


class RequestTimeoutError(ServiceClientError, TimeoutError):
    """The call's deadline elapsed before a response was fully received."""

    def __init__(self, url: str, timeout: Optional[float] = None) -> None:
        self.url = url
        self.timeout = timeout
        if timeout is not None:
            message = f"Request to {url} timed out after {timeout:g}s"
        else:
            message = f"Request to {url} timed out"
        super().__init__(message)
