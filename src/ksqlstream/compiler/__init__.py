"""Statement compiler for ksqlstream."""

from ksqlstream.compiler.statements import (
    Statement,
    StatementMode,
    build_statement,
    describe_statement,
    drop_statement,
)

__all__ = [
    "Statement",
    "StatementMode",
    "build_statement",
    "describe_statement",
    "drop_statement",
]
