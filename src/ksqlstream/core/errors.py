"""Errors raised while talking to ksqlDB."""

from __future__ import annotations

from typing import Optional


class KsqlError(Exception):
    """Base class for ksqlstream errors."""

    pass


class BuildError(KsqlError):
    """Descriptor cannot be turned into a statement."""

    pass


class TransportError(KsqlError):
    """Request could not be sent or was rejected with a non-200 status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class DecodeError(KsqlError):
    """Response body is not a single JSON object or a non-empty list."""

    pass


class ReconcileError(KsqlError):
    """Statement text does not support the expected extraction."""

    pass


class PreconditionError(KsqlError):
    """Stream existence does not match what the operation requires."""

    pass


class NotFoundError(KsqlError):
    """ksqlDB knows no stream or table with the given name."""

    pass


class EngineError(KsqlError):
    """ksqlDB answered 200 but reported a nonzero error code."""

    def __init__(self, message: str, error_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ConsistencyError(KsqlError):
    """A statement succeeded but the stream could not be read back."""

    pass
