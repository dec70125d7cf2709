"""svcclient configuration and error models."""

from .config import DEFAULT_TIMEOUT, ClientConfig, CredentialsConfig, HttpMethod
from .errors import (
    NEGOTIATION_ERRORS,
    AuthenticationFailure,
    ProtocolError,
    RequestTimeoutError,
    ServiceClientError,
    WebServiceError,
)

__all__ = [
    # Config
    "DEFAULT_TIMEOUT",
    "ClientConfig",
    "CredentialsConfig",
    "HttpMethod",
    # Errors
    "NEGOTIATION_ERRORS",
    "AuthenticationFailure",
    "ProtocolError",
    "RequestTimeoutError",
    "ServiceClientError",
    "WebServiceError",
]
