"""Default JSON codec and query-string encoder."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, BinaryIO
from urllib.parse import urlencode

from pydantic import BaseModel, TypeAdapter

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _adapter(target_type: Any) -> TypeAdapter:
    return TypeAdapter(target_type)


def _get_adapter(target_type: Any) -> TypeAdapter:
    # Unhashable annotations (rare) skip the cache
    try:
        return _adapter(target_type)
    except TypeError:
        return TypeAdapter(target_type)


class JsonStreamSerializer:
    """
    JSON codec backed by pydantic TypeAdapter.

    Implements both StreamSerializer and StreamDeserializer, so a single
    instance can be handed to AsyncServiceClient for both roles.

    Example:
        codec = JsonStreamSerializer()
        buffer = io.BytesIO()
        codec.serialize(None, Item(id=7, name="x"), buffer)
        buffer.seek(0)
        item = codec.deserialize(Item, buffer)
    """

    content_type = "application/json"

    def serialize(self, target_type: Any, value: Any, stream: BinaryIO) -> None:
        """
        Write value as JSON.

        Args:
            target_type: Declared type of value, or None to use type(value)
            value: The object to serialize
            stream: Writable binary stream
        """
        if target_type is None:
            target_type = type(value)
        stream.write(_get_adapter(target_type).dump_json(value, by_alias=True))

    def deserialize(self, target_type: Any, stream: BinaryIO) -> Any:
        """
        Read and validate JSON against target_type.

        Args:
            target_type: Type to validate into (pydantic model, dataclass, dict, Any...)
            stream: Readable binary stream positioned at the start of the body

        Returns:
            The validated value

        Raises:
            pydantic.ValidationError: If the body is not valid JSON for target_type
        """
        data = stream.read()
        if not data.strip() and target_type in (None, type(None)):
            return None
        return _get_adapter(target_type).validate_json(data)


def _to_mapping(payload: Any) -> Mapping[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", exclude_none=True, by_alias=True)
    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        return dataclasses.asdict(payload)
    if isinstance(payload, Mapping):
        return payload
    if not hasattr(payload, "__dict__"):
        raise ValueError(f"Cannot encode a {type(payload).__name__} payload as a query string")
    return {k: v for k, v in vars(payload).items() if not k.startswith("_")}


def _format_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_format_value(v) for v in value]
    return value


def encode_query(payload: Any) -> str:
    """
    Encode a payload field-by-field into a query string.

    Pydantic models, dataclasses, mappings and plain objects are supported.
    None values are dropped, booleans are rendered lowercase and sequences
    repeat the key.

    Args:
        payload: The request object

    Returns:
        Query string without the leading "?" (may be empty)

    Raises:
        ValueError: If payload is a scalar with no fields to encode

    Example:
        >>> encode_query({"id": 7, "tags": ["a", "b"]})
        'id=7&tags=a&tags=b'
    """
    fields = {key: _format_value(value) for key, value in _to_mapping(payload).items() if value is not None}
    return urlencode(fields, doseq=True)
