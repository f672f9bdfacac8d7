"""Pydantic models for ksqlstream."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Schema IDs used to be stored as -1 when not set
UNSET_SCHEMA_ID = -1


class SerializationFormat(str, Enum):
    """Serialization formats supported by ksqlDB for keys and values."""

    NONE = "NONE"
    DELIMITED = "DELIMITED"
    JSON = "JSON"
    JSON_SR = "JSON_SR"
    AVRO = "AVRO"
    KAFKA = "KAFKA"
    PROTOBUF = "PROTOBUF"
    PROTOBUF_NOSR = "PROTOBUF_NOSR"


class KsqlConfig(BaseModel):
    """ksqlDB server configuration."""

    url: str
    username: str = ""
    password: str = ""
    timeout: float = 10.0

    @field_validator("url")
    @classmethod
    def url_not_empty(cls, v: str) -> str:
        """Reject blank URLs."""
        if not v.strip():
            raise ValueError("url must not be empty")
        return v.rstrip("/")


class StreamDescriptor(BaseModel):
    """Desired configuration of a ksqlDB stream.

    Attributes:
        name: Stream name, immutable once created
        kafka_topic: Backing topic, created by ksqlDB if missing
        partitions: Partition count of the backing topic
        replicas: Replica count of the backing topic
        retention_ms: Retention of the backing topic
        key_format: Serialization format of the message key
        value_format: Serialization format of the message value
        key_schema_id: Schema Registry ID of the key schema
        value_schema_id: Schema Registry ID of the value schema
        timestamp: Column used as ROWTIME, may be enclosed in backticks
        timestamp_format: Format of the timestamp column (never read back)
        is_source: Create a read-only stream with CREATE SOURCE STREAM
        is_materialized: Derive the stream from ``query``
        query: SELECT statement the stream is materialized from
        properties: Sent as ``streamsProperties`` with the statement
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    kafka_topic: Optional[str] = None
    partitions: Optional[int] = Field(default=None, gt=0)
    replicas: Optional[int] = Field(default=None, gt=0)
    retention_ms: Optional[int] = Field(default=None, gt=0)
    key_format: Optional[SerializationFormat] = None
    value_format: Optional[SerializationFormat] = None
    key_schema_id: Optional[int] = None
    value_schema_id: Optional[int] = None
    timestamp: Optional[str] = None
    timestamp_format: Optional[str] = None
    is_source: bool = Field(default=False, alias="source")
    is_materialized: bool = Field(default=False, alias="materialized")
    query: Optional[str] = None
    properties: dict[str, str] = Field(default_factory=dict)

    @field_validator("key_format", "value_format", mode="before")
    @classmethod
    def normalize_format(cls, v: Any) -> Any:
        """Accept formats in any case."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("key_schema_id", "value_schema_id", mode="before")
    @classmethod
    def drop_unset_sentinel(cls, v: Any) -> Any:
        """Treat the legacy -1 sentinel as not set."""
        if v == UNSET_SCHEMA_ID:
            return None
        return v

    @field_validator("key_schema_id", "value_schema_id")
    @classmethod
    def schema_id_positive(cls, v: Optional[int]) -> Optional[int]:
        """Schema IDs start at 1."""
        if v is not None and v < 1:
            raise ValueError("schema id must be at least 1")
        return v

    @field_validator("properties", mode="before")
    @classmethod
    def stringify_properties(cls, v: Any) -> Any:
        """YAML turns numbers and booleans into non-strings; ksqlDB wants strings."""
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): _property_value(value) for k, value in v.items()}
        return v

    @model_validator(mode="after")
    def check_query_and_source(self) -> "StreamDescriptor":
        """Validate the source / materialized / query combination."""
        if self.is_source and self.has_query:
            raise ValueError("The query attribute can't be used alongside the source attribute")
        if self.is_materialized and not self.has_query:
            raise ValueError(f"Materialized stream '{self.name}' requires a query")
        if self.has_query and not self.is_materialized:
            raise ValueError(f"Stream '{self.name}' has a query but is not materialized")
        if not self.kafka_topic:
            raise ValueError(f"Stream '{self.name}' requires a kafka_topic")
        return self

    @property
    def has_query(self) -> bool:
        """Check if a non-blank query is set."""
        return bool(self.query and self.query.strip())


class ReconciledState(BaseModel):
    """Observed state of a stream after merging what ksqlDB reports."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    kafka_topic: Optional[str] = None
    partitions: Optional[int] = None
    replicas: Optional[int] = None
    key_format: Optional[str] = None
    value_format: Optional[str] = None
    key_schema_id: Optional[int] = None
    value_schema_id: Optional[int] = None
    timestamp: Optional[str] = None

    # Not reported by ksqlDB, carried over from the descriptor
    retention_ms: Optional[int] = None
    timestamp_format: Optional[str] = None
    is_source: bool = False
    is_materialized: bool = False
    query: Optional[str] = None
    properties: dict[str, str] = Field(default_factory=dict)

    def to_descriptor(self) -> StreamDescriptor:
        """Convert the observed state back into a descriptor."""
        return StreamDescriptor.model_validate(self.model_dump())


def _property_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)
