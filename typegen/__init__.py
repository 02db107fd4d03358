"""Typed client and schema generation from remote table metadata."""

__version__ = "0.1.0"
