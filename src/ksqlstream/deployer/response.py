"""Decoding of ksqlDB /ksql responses."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from ksqlstream.core.errors import DecodeError

# The only whitespace allowed before a JSON value
JSON_WHITESPACE = frozenset(" \n\r\t")


@dataclass
class SourceDescription:
    """The ``sourceDescription`` of a DESCRIBE response."""

    name: str = ""
    key_format: str = ""
    value_format: str = ""
    topic: str = ""
    partitions: int = 0
    replication: int = 0
    statement: str = ""
    timestamp: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceDescription":
        return cls(
            name=data.get("name") or "",
            key_format=data.get("keyFormat") or "",
            value_format=data.get("valueFormat") or "",
            topic=data.get("topic") or "",
            partitions=_int_field(data, "partitions"),
            replication=_int_field(data, "replication"),
            statement=data.get("statement") or "",
            timestamp=data.get("timestamp") or "",
        )


@dataclass
class EngineResponse:
    """A decoded ksqlDB response entity."""

    error_code: int = 0
    message: str = ""
    source: Optional[SourceDescription] = None

    @property
    def is_error(self) -> bool:
        """Check if ksqlDB reported an error."""
        return self.error_code != 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineResponse":
        source_data = data.get("sourceDescription")
        return cls(
            error_code=_int_field(data, "error_code"),
            message=str(data.get("message") or ""),
            source=SourceDescription.from_dict(source_data) if isinstance(source_data, dict) else None,
        )


def decode_response(body: Union[bytes, str]) -> EngineResponse:
    """Decode a 200 response body.

    ksqlDB answers some statements with a bare object and others with a list
    of entities. For lists only the first entity is used.
    """
    text = _to_text(body)

    first = _first_significant_char(text)
    if first == "{":
        return EngineResponse.from_dict(_load_json(text))
    elif first == "[":
        entities = _load_json(text)
        if not entities:
            raise DecodeError("response list must not be empty")
        if not isinstance(entities[0], dict):
            raise DecodeError("response list must contain objects")
        return EngineResponse.from_dict(entities[0])
    else:
        raise DecodeError("response must be object or list")


def decode_error_body(body: Union[bytes, str]) -> EngineResponse:
    """Decode the error object of a non-200 response."""
    text = _to_text(body)
    if _first_significant_char(text) != "{":
        raise DecodeError("error response must be an object")
    return EngineResponse.from_dict(_load_json(text))


def _to_text(body: Union[bytes, str]) -> str:
    if isinstance(body, str):
        return body
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"response body is not valid UTF-8: {e}") from e


def _int_field(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"invalid {key} in response: {value!r}") from e


def _first_significant_char(text: str) -> Optional[str]:
    for char in text:
        if char not in JSON_WHITESPACE:
            return char
    return None


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as e:
        raise DecodeError(f"malformed response body: {e}") from e
