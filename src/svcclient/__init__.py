"""
svcclient - Non-blocking request/response engine for remote services.

Usage:
    from svcclient import AsyncServiceClient, ClientConfig

    config = ClientConfig(base_url="https://api.example.com", timeout=10)

    async with AsyncServiceClient(config) as client:
        client.send(
            "GET", "/items", {"id": 7},
            on_success=print,
            on_error=lambda response, error: print(error),
        )
"""

__version__ = "1.0.0"

from .core import AsyncServiceClient, CallContext, CompletionGuard, ErrorClassifier, TimeoutGuard
from .http import (
    AiohttpTransport,
    JsonStreamSerializer,
    StreamDeserializer,
    StreamSerializer,
    Transport,
    TransportRequest,
    TransportResponse,
    encode_query,
)
from .logging_config import setup_logging
from .models import (
    DEFAULT_TIMEOUT,
    AuthenticationFailure,
    ClientConfig,
    CredentialsConfig,
    HttpMethod,
    ProtocolError,
    RequestTimeoutError,
    ServiceClientError,
    WebServiceError,
)

__all__ = [
    "__version__",
    # Core
    "AsyncServiceClient",
    "CallContext",
    "CompletionGuard",
    "ErrorClassifier",
    "TimeoutGuard",
    # Transport / codec
    "AiohttpTransport",
    "JsonStreamSerializer",
    "StreamDeserializer",
    "StreamSerializer",
    "Transport",
    "TransportRequest",
    "TransportResponse",
    "encode_query",
    # Config
    "DEFAULT_TIMEOUT",
    "ClientConfig",
    "CredentialsConfig",
    "HttpMethod",
    # Errors
    "AuthenticationFailure",
    "ProtocolError",
    "RequestTimeoutError",
    "ServiceClientError",
    "WebServiceError",
    # Logging
    "setup_logging",
]
