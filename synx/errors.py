"""
Synx Errors - Failure Taxonomy for Storage Synchronization
==========================================================

Every failure the sync engine can run into while talking to a storage backend
is wrapped in one of the classes below and handed to the configured error
hook. None of them escape the engine on their own.

- ReadError: the storage failed to return a value
- ParseError: the serializer rejected the stored text
- WriteError: the storage failed to set or remove a value
- SerializeError: the serializer failed to encode the cell value
"""

import logging
from typing import Callable, Optional


class SyncError(Exception):
    """Base class for failures contained by the sync engine."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class ReadError(SyncError):
    """Raised when the storage backend fails to read a key."""


class ParseError(SyncError):
    """Raised when stored text cannot be decoded by the serializer."""


class WriteError(SyncError):
    """Raised when the storage backend fails to set or remove a key."""


class SerializeError(SyncError):
    """Raised when a value cannot be encoded by the serializer."""


ErrorHandler = Callable[[SyncError], None]


def log_error(error: SyncError) -> None:
    """Default error hook: log the failure and carry on."""
    logging.error(
        f"Storage sync failed for key {error.key!r}: {error}",
        exc_info=error,
    )
