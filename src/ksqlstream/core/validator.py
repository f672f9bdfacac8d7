"""Validator for stream descriptors."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from ksqlstream.core.models import StreamDescriptor

IDENTIFIER_PATTERN = re.compile(r"^[A-Z0-9_]+$")
TOPIC_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")
MAX_TOPIC_LENGTH = 255


class ValidationLevel(str, Enum):
    """Validation message level."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class ValidationMessage:
    """A validation message."""

    level: ValidationLevel
    code: str
    message: str
    location: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of validation."""

    messages: list[ValidationMessage] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """Check if validation passed (no errors)."""
        return not any(m.level == ValidationLevel.ERROR for m in self.messages)

    @property
    def errors(self) -> list[ValidationMessage]:
        """Get error messages."""
        return [m for m in self.messages if m.level == ValidationLevel.ERROR]

    @property
    def warnings(self) -> list[ValidationMessage]:
        """Get warning messages."""
        return [m for m in self.messages if m.level == ValidationLevel.WARNING]

    def add_error(self, code: str, message: str, location: Optional[str] = None) -> None:
        """Add an error message."""
        self.messages.append(ValidationMessage(ValidationLevel.ERROR, code, message, location))

    def add_warning(self, code: str, message: str, location: Optional[str] = None) -> None:
        """Add a warning message."""
        self.messages.append(ValidationMessage(ValidationLevel.WARNING, code, message, location))


def is_back_ticked(value: str) -> bool:
    """Check if an identifier is enclosed in backticks."""
    return len(value) >= 2 and value.startswith("`") and value.endswith("`")


class StreamValidator:
    """Validator for stream descriptors.

    Structural rules (source vs. query, positive integers, formats) are
    enforced by the pydantic model. This validator checks the textual rules
    ksqlDB imposes on identifiers, topics and queries.
    """

    def __init__(self, streams: Iterable[StreamDescriptor]) -> None:
        """Initialize validator with the streams to check."""
        self.streams = list(streams)
        self.result = ValidationResult()

    def validate(self) -> ValidationResult:
        """Run all validations."""
        self._validate_duplicates()
        for stream in self.streams:
            self._validate_stream(stream)
        return self.result

    def _validate_duplicates(self) -> None:
        """Check for duplicate names."""
        seen: set[str] = set()
        for stream in self.streams:
            if stream.name in seen:
                self.result.add_error(
                    "DUPLICATE_STREAM",
                    f"Duplicate stream name '{stream.name}'",
                )
            seen.add(stream.name)

    def _validate_stream(self, stream: StreamDescriptor) -> None:
        """Validate a single stream."""
        location = f"streams.{stream.name}"

        self._validate_identifier(stream.name, f"{location}.name")
        if stream.timestamp:
            self._validate_identifier(stream.timestamp, f"{location}.timestamp")

        if stream.kafka_topic is not None:
            self._validate_topic(stream.kafka_topic, f"{location}.kafka_topic")

        if stream.query is not None:
            self._validate_query(stream.query, f"{location}.query")

        if stream.timestamp_format and not stream.timestamp:
            self.result.add_warning(
                "TIMESTAMP_FORMAT_WITHOUT_TIMESTAMP",
                f"Stream '{stream.name}' sets timestamp_format without a timestamp column",
                f"{location}.timestamp_format",
            )

    def _validate_identifier(self, value: str, location: str) -> None:
        """Identifiers must be upper case unless enclosed in backticks."""
        if not value:
            self.result.add_error("INVALID_IDENTIFIER", "Identifier must not be empty", location)
            return

        if ";" in value:
            self.result.add_error(
                "INVALID_IDENTIFIER",
                f"The identifier '{value}' must not contain a semicolon.",
                location,
            )

        if is_back_ticked(value):
            return

        if not IDENTIFIER_PATTERN.match(value):
            self.result.add_error(
                "INVALID_IDENTIFIER",
                f"The identifier '{value}' must only contain uppercase letters, numbers "
                "or underscore if it is not enclosed by backticks.",
                location,
            )

    def _validate_topic(self, value: str, location: str) -> None:
        """Validate a Kafka topic name."""
        if len(value) > MAX_TOPIC_LENGTH:
            self.result.add_error(
                "INVALID_TOPIC",
                f"The topic name '{value}' is too long. "
                f"Must be up to {MAX_TOPIC_LENGTH} characters in length.",
                location,
            )

        if not TOPIC_PATTERN.match(value):
            self.result.add_error(
                "INVALID_TOPIC",
                f"The topic name '{value}' is invalid. It can include the following "
                "characters: a-z, A-Z, 0-9, . (dot), _ (underscore), and - (dash).",
                location,
            )

    def _validate_query(self, value: str, location: str) -> None:
        """The query is embedded verbatim, so it must be a single SELECT."""
        if ";" in value:
            self.result.add_error(
                "INVALID_QUERY",
                "The query must not contain a semicolon",
                location,
            )

        if not value.upper().startswith("SELECT "):
            self.result.add_error(
                "INVALID_QUERY",
                "The query must start with the SELECT keyword",
                location,
            )
