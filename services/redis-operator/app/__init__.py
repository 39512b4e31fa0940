"""Redis Sentinel Operator service."""

__version__ = "0.1.0"
