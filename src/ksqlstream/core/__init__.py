"""Core models and utilities for ksqlstream."""

from ksqlstream.core.models import (
    KsqlConfig,
    ReconciledState,
    SerializationFormat,
    StreamDescriptor,
)
from ksqlstream.core.parser import StreamFileParser, load_config
from ksqlstream.core.validator import StreamValidator

__all__ = [
    "KsqlConfig",
    "ReconciledState",
    "SerializationFormat",
    "StreamDescriptor",
    "StreamFileParser",
    "StreamValidator",
    "load_config",
]
