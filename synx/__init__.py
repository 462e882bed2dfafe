"""
Synx - Storage-Synchronized Observables
=======================================

Keeps an observable value consistent with a key-value storage backend across
local mutations, changes made by other writers, and pluggable serialization.
"""

from .errors import (
    ErrorHandler,
    ParseError,
    ReadError,
    SerializeError,
    SyncError,
    WriteError,
    log_error,
)
from .filters import (
    EventFilter,
    PausableFilter,
    bypass_filter,
    debounce_filter,
    throttle_filter,
)
from .observable import Observable, Subscription
from .options import SyncOptions
from .scheduler import AsyncioScheduler, FlushTiming, ManualScheduler, Scheduler
from .serializers import (
    STORAGE_SERIALIZERS,
    Serializer,
    Tag,
    guess_serializer_tag,
    serializer_for,
)
from .storage import (
    AsyncStorageLike,
    ChangeEvent,
    ChangeSource,
    ExecutorStorage,
    StorageLike,
)
from .sync import StorageSync, SyncState, sync
from .util import JsonFileStorage, MemoryStorage, SharedMemoryBackend, StorageView

__all__ = [
    # Engine
    "sync",
    "StorageSync",
    "SyncState",
    "SyncOptions",
    # Cell
    "Observable",
    "Subscription",
    # Serialization
    "Tag",
    "Serializer",
    "STORAGE_SERIALIZERS",
    "guess_serializer_tag",
    "serializer_for",
    # Scheduling and filters
    "FlushTiming",
    "Scheduler",
    "ManualScheduler",
    "AsyncioScheduler",
    "EventFilter",
    "PausableFilter",
    "bypass_filter",
    "debounce_filter",
    "throttle_filter",
    # Storage
    "StorageLike",
    "AsyncStorageLike",
    "ChangeSource",
    "ChangeEvent",
    "ExecutorStorage",
    "MemoryStorage",
    "JsonFileStorage",
    "SharedMemoryBackend",
    "StorageView",
    # Errors
    "SyncError",
    "ReadError",
    "ParseError",
    "WriteError",
    "SerializeError",
    "ErrorHandler",
    "log_error",
]
