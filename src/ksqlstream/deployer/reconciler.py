"""Reconcile DESCRIBE results with the desired stream configuration.

ksqlDB does not report schema IDs, and reports the timestamp column without
the backticks it was declared with. The only record of both is the CREATE
statement echoed back in the source description, so they are recovered from
that text with two narrow patterns.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from ksqlstream.core.errors import ReconcileError
from ksqlstream.core.models import ReconciledState, StreamDescriptor
from ksqlstream.deployer.response import EngineResponse

logger = logging.getLogger(__name__)

# Both quoted and unquoted IDs are accepted, statements are built with quotes
KEY_SCHEMA_ID_PATTERN = re.compile(r"\bKEY_SCHEMA_ID\s*=\s*'?(\d+)'?", re.IGNORECASE)
VALUE_SCHEMA_ID_PATTERN = re.compile(r"\bVALUE_SCHEMA_ID\s*=\s*'?(\d+)'?", re.IGNORECASE)
SOURCE_STATEMENT_PATTERN = re.compile(r"^\s*CREATE\s+SOURCE\s+STREAM\b", re.IGNORECASE)

BACKTICK = "`"


def extract_schema_id(statement: str, pattern: re.Pattern[str]) -> Optional[int]:
    """Extract a schema ID from statement text.

    Returns None if the statement does not set the ID. Repeated assignments
    must agree.
    """
    ids: set[int] = set()
    for match in pattern.finditer(statement):
        digits = match.group(1)
        try:
            ids.add(int(digits))
        except ValueError as e:
            raise ReconcileError(f"Cannot parse schema id '{digits}': {e}") from e

    if not ids:
        return None
    if len(ids) > 1:
        raise ReconcileError(
            f"Ambiguous schema ids {sorted(ids)} for pattern '{pattern.pattern}'"
        )
    return ids.pop()


def extract_timestamp(statement: str, timestamp: str) -> Optional[str]:
    """Recover the timestamp column the way it was declared.

    If the first occurrence of the column in the statement is enclosed in
    backticks, the backticked form is returned.
    """
    if not timestamp:
        return None

    index = statement.find(timestamp)
    if index < 0:
        raise ReconcileError(
            f"Timestamp column '{timestamp}' not found in statement: {statement}"
        )

    end = index + len(timestamp)
    before = statement[index - 1] if index > 0 else ""
    after = statement[end] if end < len(statement) else ""

    if before == BACKTICK and after == BACKTICK:
        return f"{BACKTICK}{timestamp}{BACKTICK}"
    return timestamp


def is_source_statement(statement: str) -> bool:
    """Check if a stream was declared with CREATE SOURCE STREAM."""
    return SOURCE_STATEMENT_PATTERN.match(statement) is not None


def reconcile(
    descriptor: Optional[StreamDescriptor],
    response: EngineResponse,
) -> ReconciledState:
    """Merge a DESCRIBE response into the observed state of a stream.

    Fields ksqlDB does not report (retention, timestamp format, query, ...)
    are taken from the descriptor when one is given. Without one, the source
    flag is recovered from the statement.
    """
    source = response.source
    if source is None:
        raise ReconcileError("Response does not contain a source description")
    statement = source.statement

    state = ReconciledState(
        name=source.name,
        kafka_topic=source.topic or None,
        partitions=source.partitions or None,
        replicas=source.replication or None,
        key_format=source.key_format or None,
        value_format=source.value_format or None,
        key_schema_id=extract_schema_id(statement, KEY_SCHEMA_ID_PATTERN),
        value_schema_id=extract_schema_id(statement, VALUE_SCHEMA_ID_PATTERN),
        timestamp=extract_timestamp(statement, source.timestamp),
        is_source=is_source_statement(statement),
    )

    if descriptor is not None:
        state.retention_ms = descriptor.retention_ms
        state.timestamp_format = descriptor.timestamp_format
        state.is_source = descriptor.is_source
        state.is_materialized = descriptor.is_materialized
        state.query = descriptor.query
        state.properties = dict(descriptor.properties)

    logger.debug(f"Reconciled stream '{state.name}': {state.model_dump()}")
    return state
