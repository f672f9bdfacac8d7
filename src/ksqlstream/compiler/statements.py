"""KSQL statement generation for streams."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ksqlstream.core.errors import BuildError
from ksqlstream.core.models import StreamDescriptor

logger = logging.getLogger(__name__)

# WITH clause properties in the order they are emitted
WITH_PROPERTIES: list[tuple[str, str]] = [
    ("KAFKA_TOPIC", "kafka_topic"),
    ("PARTITIONS", "partitions"),
    ("REPLICAS", "replicas"),
    ("RETENTION_MS", "retention_ms"),
    ("TIMESTAMP", "timestamp"),
    ("TIMESTAMP_FORMAT", "timestamp_format"),
    ("KEY_FORMAT", "key_format"),
    ("VALUE_FORMAT", "value_format"),
    ("KEY_SCHEMA_ID", "key_schema_id"),
    ("VALUE_SCHEMA_ID", "value_schema_id"),
]


class StatementMode(str, Enum):
    """How a CREATE statement treats an existing stream."""

    CREATE_SOURCE = "create_source"
    CREATE_OR_REPLACE = "create_or_replace"


@dataclass(frozen=True)
class Statement:
    """A KSQL statement and the streams properties sent with it."""

    sql: str
    properties: dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "ksql": self.sql,
            "streamsProperties": dict(self.properties),
        }


def build_statement(descriptor: StreamDescriptor, mode: StatementMode) -> Statement:
    """Build the CREATE statement for a stream.

    Unset properties are left out of the WITH clause. Integers are quoted
    like strings, e.g. ``PARTITIONS = '3'``.
    """
    if descriptor.is_source and descriptor.has_query:
        raise BuildError(f"Source stream '{descriptor.name}' can't be created from a query")
    if descriptor.is_materialized and not descriptor.has_query:
        raise BuildError(f"Materialized stream '{descriptor.name}' requires a query")

    # ksqlDB rejects an empty WITH clause
    assignments = _with_clause(descriptor)
    if not assignments:
        raise BuildError(f"Stream '{descriptor.name}' has no properties for the WITH clause")

    parts = ["CREATE"]
    if mode == StatementMode.CREATE_SOURCE:
        parts.append(" SOURCE")
    else:
        parts.append(" OR REPLACE")

    parts.append(f" STREAM {descriptor.name} WITH (")
    parts.append(", ".join(assignments))
    parts.append(")")

    if descriptor.is_materialized:
        parts.append(f" AS {descriptor.query}")

    parts.append(";")

    sql = "".join(parts)
    logger.info(f"Created KSQL statement: {sql}")

    return Statement(sql=sql, properties=dict(descriptor.properties))


def describe_statement(name: str) -> Statement:
    """Build a DESCRIBE statement."""
    return Statement(sql=f"DESCRIBE {name};")


def drop_statement(name: str) -> Statement:
    """Build a DROP STREAM statement."""
    return Statement(sql=f"DROP STREAM {name};")


def _with_clause(descriptor: StreamDescriptor) -> list[str]:
    assignments = []
    for key, attribute in WITH_PROPERTIES:
        value = _format_value(getattr(descriptor, attribute))
        if value is None:
            continue
        assignments.append(f"{key} = '{value}'")
    return assignments


def _format_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)
