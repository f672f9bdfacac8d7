"""Deployer for ksqlstream."""

from ksqlstream.deployer.streams import StreamDeployer
from ksqlstream.deployer.transport import KsqlTransport

__all__ = [
    "KsqlTransport",
    "StreamDeployer",
]
