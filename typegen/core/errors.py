"""Error taxonomy for generation runs.

Everything below ``TypegenError`` is recoverable at the batch level: the
engine records it against the failing target and moves on. Only
``ConfigDocumentError`` aborts a run, because without a valid document there
is nothing to iterate over.
"""
from typing import List, Optional


class TypegenError(Exception):
    kind = "TypegenError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class MetadataFetchError(TypegenError):
    """The remote service could not be reached or refused the request."""
    kind = "MetadataFetchError"

    def __init__(self, message: str, missing: Optional[List[str]] = None, suspect: Optional[str] = None):
        super().__init__(message)
        self.missing = list(missing or [])
        # one of "server", "database", "auth", "layout" or None
        self.suspect = suspect


class MetadataParseError(TypegenError):
    kind = "MetadataParseError"


class ConfigurationError(TypegenError):
    kind = "ConfigurationError"


class WriteError(TypegenError):
    kind = "WriteError"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ConfigDocumentError(Exception):
    """The configuration document itself is unreadable or invalid."""

    def __init__(self, message: str, issues: Optional[List[dict]] = None):
        super().__init__(message)
        self.message = message
        self.issues = list(issues or [])
