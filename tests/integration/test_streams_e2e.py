"""Integration tests for the stream deployer against a live ksqlDB."""

import pytest

from ksqlstream.core.errors import NotFoundError, PreconditionError
from ksqlstream.core.models import StreamDescriptor

from .conftest import unique_name

pytestmark = pytest.mark.integration


class TestStreamLifecycle:
    """Create, read, update and drop streams on a real server."""

    def test_connection(self, live_deployer):
        assert live_deployer.check_connection()

    def test_describe_unknown(self, live_deployer):
        with pytest.raises(NotFoundError):
            live_deployer.describe(unique_name("MISSING"))

    def test_create_read_drop(self, live_deployer, stream_names, avro_stream):
        descriptor = avro_stream(unique_name("ORDERS"))
        stream_names.append(descriptor.name)

        state = live_deployer.create(descriptor)

        assert state.name == descriptor.name
        assert state.kafka_topic == descriptor.kafka_topic
        assert state.partitions == 1
        assert state.value_format == "AVRO"
        assert state.value_schema_id == descriptor.value_schema_id

        assert live_deployer.describe(descriptor.name).value_schema_id == descriptor.value_schema_id

        live_deployer.drop(descriptor.name)
        with pytest.raises(NotFoundError):
            live_deployer.describe(descriptor.name)

    def test_create_twice(self, live_deployer, stream_names, avro_stream):
        descriptor = avro_stream(unique_name("DUPLICATE"))
        stream_names.append(descriptor.name)

        live_deployer.create(descriptor)

        with pytest.raises(PreconditionError):
            live_deployer.create(descriptor)

    def test_materialized_stream(self, live_deployer, stream_names, avro_stream):
        source = avro_stream(unique_name("SOURCE"))
        derived = unique_name("DERIVED")
        stream_names.extend([source.name, derived])

        live_deployer.create(source)
        state = live_deployer.create(
            StreamDescriptor(
                name=derived,
                kafka_topic=derived.lower(),
                materialized=True,
                query=f"SELECT * FROM {source.name} WHERE AMOUNT > 100 EMIT CHANGES",
            )
        )

        assert state.is_materialized
        assert state.kafka_topic == derived.lower()

    def test_apply_is_idempotent(self, live_deployer, stream_names, avro_stream):
        descriptor = avro_stream(unique_name("APPLIED"))
        stream_names.append(descriptor.name)

        assert live_deployer.apply_stream(descriptor) == "created"
        assert live_deployer.apply_stream(descriptor) == "updated"
