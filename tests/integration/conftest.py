"""Pytest fixtures for integration tests against a running ksqlDB server.

Point KSQLDB_URL at a server (default: http://localhost:8088). Tests are
skipped when it does not answer.

Test subset execution:
    pytest -m integration          # Run only integration tests
    pytest -m "not integration"    # Run only unit tests
"""

import json
import os
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Generator

import pytest
import requests

from ksqlstream.core.errors import KsqlError
from ksqlstream.core.models import KsqlConfig, StreamDescriptor
from ksqlstream.deployer.streams import StreamDeployer


@dataclass
class InfrastructureConfig:
    """Configuration for test infrastructure.

    All settings can be overridden via environment variables:
        KSQLDB_URL - ksqlDB REST URL (default: http://localhost:8088)
        KSQLDB_USERNAME - Basic auth username (default: empty)
        KSQLDB_PASSWORD - Basic auth password (default: empty)
        SCHEMA_REGISTRY_URL - Schema Registry URL (default: http://localhost:8081)
    """

    ksqldb_url: str = ""
    username: str = ""
    password: str = ""
    schema_registry_url: str = ""

    def __post_init__(self):
        """Load configuration from environment variables with defaults."""
        self.ksqldb_url = os.getenv("KSQLDB_URL", "http://localhost:8088")
        self.username = os.getenv("KSQLDB_USERNAME", "")
        self.password = os.getenv("KSQLDB_PASSWORD", "")
        self.schema_registry_url = os.getenv("SCHEMA_REGISTRY_URL", "http://localhost:8081")


INFRA_CONFIG = InfrastructureConfig()


def is_service_healthy(url: str, timeout: int = 5) -> bool:
    """Check if a service is healthy by making an HTTP request."""
    try:
        response = requests.get(url, timeout=timeout)
        return response.status_code == 200
    except requests.RequestException:
        return False


def wait_for_service(check_fn, service_name: str, max_wait: int = 30, interval: int = 2) -> bool:
    """Wait for a service to become healthy."""
    start = time.time()
    while time.time() - start < max_wait:
        if check_fn():
            return True
        print(f"Waiting for {service_name}...")
        time.sleep(interval)
    return False


@pytest.fixture(scope="session")
def ksqldb_config() -> KsqlConfig:
    """Session-scoped connection settings, skipping when ksqlDB is down."""
    if not wait_for_service(
        lambda: is_service_healthy(f"{INFRA_CONFIG.ksqldb_url}/info"),
        "ksqlDB",
        max_wait=int(os.getenv("KSQLDB_WAIT", "10")),
    ):
        pytest.skip(f"ksqlDB is not reachable at {INFRA_CONFIG.ksqldb_url}")

    return KsqlConfig(
        url=INFRA_CONFIG.ksqldb_url,
        username=INFRA_CONFIG.username,
        password=INFRA_CONFIG.password,
    )


@pytest.fixture
def live_deployer(ksqldb_config: KsqlConfig) -> StreamDeployer:
    return StreamDeployer.from_config(ksqldb_config)


@pytest.fixture
def stream_names(live_deployer: StreamDeployer) -> Generator[list[str], None, None]:
    """Collect stream names to drop after the test, most recent first."""
    names: list[str] = []
    yield names

    for name in reversed(names):
        try:
            if live_deployer.exists(name):
                live_deployer.drop(name)
        except KsqlError as e:
            print(f"Failed to drop {name}: {e}")


ORDER_SCHEMA = {
    "type": "record",
    "name": "Order",
    "fields": [
        {"name": "ID", "type": "string"},
        {"name": "AMOUNT", "type": "double"},
    ],
}


@pytest.fixture(scope="session")
def schema_registry_url(ksqldb_config: KsqlConfig) -> str:
    """Schema Registry used by ksqlDB to resolve AVRO schema IDs."""
    url = INFRA_CONFIG.schema_registry_url
    if not is_service_healthy(f"{url}/subjects"):
        pytest.skip(f"Schema Registry is not reachable at {url}")
    return url


@pytest.fixture
def avro_stream(schema_registry_url: str) -> Callable[[str], StreamDescriptor]:
    """Factory registering a value schema and returning a matching descriptor."""

    def create(name: str) -> StreamDescriptor:
        topic = name.lower()
        response = requests.post(
            f"{schema_registry_url}/subjects/{topic}-value/versions",
            headers={"Content-Type": "application/vnd.schemaregistry.v1+json"},
            data=json.dumps({"schema": json.dumps(ORDER_SCHEMA)}),
            timeout=10,
        )
        response.raise_for_status()

        return StreamDescriptor(
            name=name,
            kafka_topic=topic,
            partitions=1,
            replicas=1,
            value_format="AVRO",
            value_schema_id=response.json()["id"],
        )

    return create


def unique_name(prefix: str) -> str:
    """Generate a unique upper-case stream name."""
    return f"{prefix}_{uuid.uuid4().hex[:8].upper()}"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring a ksqlDB server",
    )
