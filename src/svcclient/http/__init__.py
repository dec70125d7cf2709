"""Transport and wire-format layer for svcclient."""

from .protocols import (
    QueryEncoder,
    RequestFilter,
    StreamDeserializer,
    StreamSerializer,
    Transport,
    TransportRequest,
    TransportResponse,
)
from .serializers import JsonStreamSerializer, encode_query
from .transport import AiohttpRequest, AiohttpResponse, AiohttpTransport

__all__ = [
    "AiohttpRequest",
    "AiohttpResponse",
    "AiohttpTransport",
    "JsonStreamSerializer",
    "QueryEncoder",
    "RequestFilter",
    "StreamDeserializer",
    "StreamSerializer",
    "Transport",
    "TransportRequest",
    "TransportResponse",
    "encode_query",
]
