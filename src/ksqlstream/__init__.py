"""ksqlstream - declarative ksqlDB streams."""

__version__ = "0.1.0"
