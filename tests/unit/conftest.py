"""Shared fakes for unit tests.

FakeKsqlServer stands in for a requests.Session talking to ksqlDB. It keeps
created streams in memory and answers DESCRIBE, CREATE and DROP the way the
/ksql endpoint does.
"""

import json
import re
import threading
from typing import Any, Optional

import pytest

from ksqlstream.deployer.streams import StreamDeployer
from ksqlstream.deployer.transport import KsqlTransport

KSQL_URL = "http://ksqldb:8088"

CREATE_PATTERN = re.compile(
    r"CREATE (?:SOURCE |OR REPLACE )?STREAM (\S+) WITH \((.*?)\)",
    re.DOTALL,
)
WITH_PROPERTY_PATTERN = re.compile(r"(\w+) = '([^']*)'")


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        if body is None:
            self.content = b""
        elif isinstance(body, bytes):
            self.content = body
        elif isinstance(body, str):
            self.content = body.encode("utf-8")
        else:
            self.content = json.dumps(body).encode("utf-8")


def source_description(
    name: str,
    statement: str,
    topic: Optional[str] = None,
    timestamp: str = "",
    key_format: str = "KAFKA",
    value_format: str = "JSON",
    partitions: int = 1,
    replication: int = 1,
) -> dict:
    """Build a DESCRIBE response entity."""
    return {
        "@type": "sourceDescription",
        "statementText": f"DESCRIBE {name};",
        "sourceDescription": {
            "name": name,
            "type": "STREAM",
            "keyFormat": key_format,
            "valueFormat": value_format,
            "topic": topic or name.lower(),
            "partitions": partitions,
            "replication": replication,
            "statement": statement,
            "timestamp": timestamp,
        },
        "warnings": [],
    }


def not_found_error(name: str) -> dict:
    """Build the error ksqlDB returns when describing an unknown source."""
    return {
        "@type": "statement_error",
        "error_code": 40001,
        "message": f"Could not find STREAM/TABLE '{name}' in the Metastore",
        "statementText": f"DESCRIBE {name};",
        "entities": [],
    }


class FakeKsqlServer:
    """In-memory ksqlDB answering /ksql requests."""

    def __init__(self) -> None:
        self.streams: dict[str, dict] = {}
        self.requests: list[dict] = []
        # Accept CREATE statements without remembering the stream
        self.forget_created = False
        # Answer DROP with 200 and a nonzero error code
        self.drop_error: Optional[str] = None
        self.status_override: Optional[FakeResponse] = None
        self._lock = threading.Lock()

    @property
    def statements(self) -> list[str]:
        """KSQL statements received so far."""
        return [r["payload"]["ksql"] for r in self.requests]

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return FakeResponse(200, {"KsqlServerInfo": {"version": "0.29.0"}})

    def post(self, url: str, data: Optional[str] = None, **kwargs: Any) -> FakeResponse:
        payload = json.loads(data)
        with self._lock:
            self.requests.append({"url": url, "payload": payload, **kwargs})

        if self.status_override is not None:
            return self.status_override

        ksql = payload["ksql"]
        upper = ksql.upper()
        if upper.startswith("DESCRIBE "):
            return self._describe(ksql[len("DESCRIBE "):].rstrip(";").strip())
        if upper.startswith("CREATE"):
            return self._create(ksql)
        if upper.startswith("DROP STREAM "):
            return self._drop(ksql[len("DROP STREAM "):].rstrip(";").strip())
        return FakeResponse(400, {"error_code": 40001, "message": f"line 1:1: mismatched input '{ksql}'"})

    def _describe(self, name: str) -> FakeResponse:
        stream = self.streams.get(name)
        if stream is None:
            return FakeResponse(400, not_found_error(name))
        return FakeResponse(200, [source_description(**stream)])

    def _create(self, ksql: str) -> FakeResponse:
        match = CREATE_PATTERN.match(ksql)
        name = match.group(1)
        props = dict(WITH_PROPERTY_PATTERN.findall(match.group(2)))

        if not self.forget_created:
            self.streams[name] = {
                "name": name,
                "statement": ksql,
                "topic": props.get("KAFKA_TOPIC", name),
                "timestamp": props.get("TIMESTAMP", "").strip("`"),
                "key_format": props.get("KEY_FORMAT", "KAFKA"),
                "value_format": props.get("VALUE_FORMAT", "JSON"),
                "partitions": int(props.get("PARTITIONS", 1)),
                "replication": int(props.get("REPLICAS", 1)),
            }
        return FakeResponse(
            200,
            [
                {
                    "@type": "currentStatus",
                    "statementText": ksql,
                    "commandId": f"stream/`{name}`/create",
                    "commandStatus": {"status": "SUCCESS", "message": "Stream created"},
                    "commandSequenceNumber": len(self.requests),
                    "warnings": [],
                }
            ],
        )

    def _drop(self, name: str) -> FakeResponse:
        if self.drop_error:
            return FakeResponse(200, {"error_code": 50000, "message": self.drop_error})
        self.streams.pop(name, None)
        return FakeResponse(
            200,
            [
                {
                    "@type": "currentStatus",
                    "statementText": f"DROP STREAM {name};",
                    "commandStatus": {"status": "SUCCESS", "message": "Source dropped."},
                }
            ],
        )


@pytest.fixture
def server() -> FakeKsqlServer:
    return FakeKsqlServer()


@pytest.fixture
def transport(server: FakeKsqlServer) -> KsqlTransport:
    return KsqlTransport(KSQL_URL, "user", "secret", session=server, lock=threading.Lock())


@pytest.fixture
def deployer(transport: KsqlTransport) -> StreamDeployer:
    return StreamDeployer(transport)
