"""Stream deployer for ksqlDB stream lifecycle management."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ksqlstream.compiler.statements import (
    Statement,
    StatementMode,
    build_statement,
    describe_statement,
    drop_statement,
)
from ksqlstream.core.errors import (
    BuildError,
    ConsistencyError,
    EngineError,
    KsqlError,
    NotFoundError,
    PreconditionError,
    TransportError,
)
from ksqlstream.core.models import KsqlConfig, ReconciledState, StreamDescriptor
from ksqlstream.core.validator import StreamValidator
from ksqlstream.deployer.reconciler import reconcile
from ksqlstream.deployer.response import EngineResponse
from ksqlstream.deployer.transport import KsqlTransport

logger = logging.getLogger(__name__)

NOT_FOUND_MARKER = "could not find"


class StreamDeployer:
    """Deployer for ksqlDB streams."""

    def __init__(self, transport: KsqlTransport) -> None:
        """Initialize stream deployer."""
        self.transport = transport

    @classmethod
    def from_config(cls, config: KsqlConfig, **kwargs: Any) -> "StreamDeployer":
        """Create a deployer from connection settings."""
        return cls(KsqlTransport.from_config(config, **kwargs))

    def check_connection(self) -> bool:
        """Check if ksqlDB is accessible."""
        return self.transport.check_connection()

    def describe(
        self,
        name: str,
        descriptor: Optional[StreamDescriptor] = None,
    ) -> ReconciledState:
        """Get the current state of a stream.

        Raises:
            NotFoundError: ksqlDB has no stream or table with this name
        """
        response = self._describe_raw(name)
        return reconcile(descriptor, response)

    def exists(self, name: str) -> bool:
        """Check if a stream or table with this name exists."""
        try:
            self._describe_raw(name)
        except NotFoundError:
            return False
        return True

    def create(self, descriptor: StreamDescriptor) -> ReconciledState:
        """Create a stream and return its state as read back from ksqlDB."""
        self._validate(descriptor)

        name = descriptor.name
        if self.exists(name):
            raise PreconditionError(f"there is already a stream or a table named {name}")

        return self._create(descriptor)

    def update(self, descriptor: StreamDescriptor) -> ReconciledState:
        """Replace an existing stream with CREATE OR REPLACE."""
        name = descriptor.name
        if descriptor.is_source:
            raise BuildError(
                f"Source stream '{name}' is read-only and can't be updated, it must be recreated"
            )
        self._validate(descriptor)

        if not self.exists(name):
            raise PreconditionError(f"there is no stream or table named {name}")

        return self._replace(descriptor)

    def drop(self, name: str) -> None:
        """Drop a stream."""
        if not self.exists(name):
            raise PreconditionError(f"there is no stream or table named {name}")

        self._execute(drop_statement(name))
        logger.info(f"Dropped stream '{name}'")

    def import_stream(self, name: str) -> ReconciledState:
        """Read an existing stream so it can be managed.

        Write-only attributes (query, timestamp format, properties) can't be
        recovered and are left unset. The source flag is read from the
        statement ksqlDB echoes back.
        """
        if name.upper() != name:
            raise BuildError("The name must be specified in uppercase")
        return self.describe(name)

    def apply_stream(self, descriptor: StreamDescriptor) -> str:
        """Create or update a stream. Returns action taken."""
        self._validate(descriptor)

        if not self.exists(descriptor.name):
            self._create(descriptor)
            return "created"

        if descriptor.is_source:
            raise BuildError(
                f"Source stream '{descriptor.name}' already exists and can't be modified"
            )
        self._replace(descriptor)
        return "updated"

    def _create(self, descriptor: StreamDescriptor) -> ReconciledState:
        """Send CREATE for a stream known to be absent and read it back."""
        name = descriptor.name
        mode = StatementMode.CREATE_SOURCE if descriptor.is_source else StatementMode.CREATE_OR_REPLACE
        self._execute(build_statement(descriptor, mode))

        try:
            return self.describe(name, descriptor)
        except KsqlError as e:
            raise ConsistencyError(
                f"Stream '{name}' was created but could not be read back: {e}"
            ) from e

    def _replace(self, descriptor: StreamDescriptor) -> ReconciledState:
        """Send CREATE OR REPLACE for a stream known to exist and read it back."""
        self._execute(build_statement(descriptor, StatementMode.CREATE_OR_REPLACE))
        return self.describe(descriptor.name, descriptor)

    def _describe_raw(self, name: str) -> EngineResponse:
        """Issue DESCRIBE and map 'no such source' answers to NotFoundError."""
        try:
            response = self.transport.send(describe_statement(name))
        except TransportError as e:
            if _is_not_found(e):
                raise NotFoundError(e.message) from e
            raise

        if response.is_error or response.source is None:
            message = response.message or f"there is no stream or table named {name}"
            raise NotFoundError(message)
        return response

    def _execute(self, statement: Statement) -> EngineResponse:
        """Send a statement and fail on engine-reported errors."""
        response = self.transport.send(statement)
        if response.is_error:
            message = response.message or f"ksqlDB rejected statement: {statement.sql}"
            raise EngineError(message, error_code=response.error_code)
        return response

    def _validate(self, descriptor: StreamDescriptor) -> None:
        """Reject descriptors ksqlDB would refuse."""
        result = StreamValidator([descriptor]).validate()
        for warning in result.warnings:
            logger.warning(warning.message)
        if not result.is_valid:
            raise BuildError("; ".join(error.message for error in result.errors))


def _is_not_found(error: TransportError) -> bool:
    if error.status_code == 404:
        return True
    return NOT_FOUND_MARKER in error.message.lower()
