"""HTTP transport for the ksqlDB /ksql endpoint."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Optional

import requests

from ksqlstream.compiler.statements import Statement
from ksqlstream.core.errors import DecodeError, TransportError
from ksqlstream.core.models import KsqlConfig
from ksqlstream.deployer.response import EngineResponse, decode_error_body, decode_response

logger = logging.getLogger(__name__)

# Default timeouts (in seconds)
DEFAULT_TIMEOUT = 10

KSQL_CONTENT_TYPE = "application/vnd.ksql.v1+json"

_endpoint_locks: dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()


def endpoint_lock(url: str) -> threading.Lock:
    """Get the process-wide lock for a ksqlDB endpoint.

    ksqlDB may fail with a ProducerFencedException when two statements race,
    so only one request per endpoint is in flight at a time.
    """
    key = url.rstrip("/")
    with _registry_lock:
        lock = _endpoint_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _endpoint_locks[key] = lock
        return lock


class KsqlTransport:
    """Sends KSQL statements to a ksqlDB server."""

    def __init__(
        self,
        url: str,
        username: str = "",
        password: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        lock: Optional[Any] = None,
    ) -> None:
        """Initialize transport.

        Args:
            url: Base URL of the ksqlDB server
            username: Basic auth username, sent even when empty
            password: Basic auth password, sent even when empty
            timeout: Request timeout in seconds
            session: HTTP session, a new one is created if omitted
            lock: Lock serializing requests, defaults to the endpoint lock
        """
        self.url = url.rstrip("/")
        self.auth = (username or "", password or "")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.lock = lock if lock is not None else endpoint_lock(self.url)
        self.headers = {"Accept": KSQL_CONTENT_TYPE}

    @classmethod
    def from_config(cls, config: KsqlConfig, **kwargs: Any) -> "KsqlTransport":
        """Create a transport from connection settings."""
        return cls(
            config.url,
            username=config.username,
            password=config.password,
            timeout=config.timeout,
            **kwargs,
        )

    def check_connection(self) -> bool:
        """Check if the ksqlDB server is accessible."""
        try:
            response = self.session.get(
                f"{self.url}/info",
                headers=self.headers,
                auth=self.auth,
                timeout=self.timeout,
            )
            return response.status_code == 200
        except requests.RequestException:
            return False

    def send(self, statement: Statement) -> EngineResponse:
        """Send a statement and decode the response."""
        try:
            body = json.dumps(statement.to_payload())
        except (TypeError, ValueError) as e:
            raise TransportError(f"Cannot encode KSQL request: {e}") from e

        logger.info(f"Executing KSQL request: {body}")

        # Held for the HTTP round trip only, decoding happens outside
        with self.lock:
            try:
                response = self.session.post(
                    f"{self.url}/ksql",
                    data=body,
                    headers=self.headers,
                    auth=self.auth,
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise TransportError(f"Request to ksqlDB at {self.url} failed: {e}") from e

        content = response.content
        logger.info(f"Received KSQL response: {content.decode('utf-8', errors='replace')}")

        if response.status_code != 200:
            raise self._error_from_response(response.status_code, content)

        return decode_response(content)

    def _error_from_response(self, status_code: int, content: bytes) -> TransportError:
        """Turn a non-200 response into a TransportError carrying the engine message."""
        try:
            error = decode_error_body(content)
        except DecodeError:
            text = content.decode("utf-8", errors="replace").strip()
            message = f"ksqlDB returned HTTP {status_code}"
            if text:
                message = f"{message}: {text}"
            return TransportError(message, status_code=status_code)

        message = error.message or f"ksqlDB returned HTTP {status_code}"
        return TransportError(message, status_code=status_code, error_code=error.error_code)
