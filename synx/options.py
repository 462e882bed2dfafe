"""
Synx Options - Sync Engine Configuration
========================================
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from .errors import ErrorHandler, log_error
from .filters import EventFilter
from .scheduler import FlushTiming, Scheduler
from .serializers import Serializer
from .storage import ChangeSource

T = TypeVar("T")


@dataclass
class SyncOptions(Generic[T]):
    """
    Configuration for a `StorageSync` engine.

    Attributes:
        flush: When local mutations are written, relative to the scheduler's
            render boundary. Accepts the enum or "pre"/"post"/"sync" and the
            "before-render"/"after-render"/"synchronous" spellings. Defaults
            to "sync" so that an engine works without a scheduler or event
            loop; pass "pre" to batch writes before the next render.
        deep: Detect in-place changes of nested data (structural compare).
        listen_to_storage_changes: Apply changes made by other writers.
        write_defaults: Write the default value when the key is missing.
        shallow: The cell ignores item assignment; only replacing the value
            counts as a mutation. Only applies to cells the engine creates; an
            Observable passed as the default keeps its own setting.
        serializer: Explicit read/write pair overriding the guessed one.
        on_error: Hook receiving every contained failure.
        event_filter: Narrows which local mutations lead to a write.
        scheduler: Where deferred work runs. Defaults to an asyncio scheduler
            on the loop running when the engine is created.
        change_source: Source of external change events. Defaults to the
            storage itself when it has a `subscribe` method.
    """

    flush: Union[FlushTiming, str] = FlushTiming.SYNC
    deep: bool = True
    listen_to_storage_changes: bool = True
    write_defaults: bool = True
    shallow: bool = False
    serializer: Optional[Serializer[T]] = None
    on_error: ErrorHandler = log_error
    event_filter: Optional[EventFilter] = None
    scheduler: Optional[Scheduler] = None
    change_source: Optional[ChangeSource] = None

    def __post_init__(self) -> None:
        self.flush = FlushTiming.coerce(self.flush)
        if self.serializer is not None and not _has_callables(
            self.serializer, "read", "write"
        ):
            raise TypeError("serializer must provide callable read and write")
        if not callable(self.on_error):
            raise TypeError("on_error must be callable")
        if self.event_filter is not None and not callable(self.event_filter):
            raise TypeError("event_filter must be callable")


def _has_callables(obj: Any, *names: str) -> bool:
    return all(callable(getattr(obj, name, None)) for name in names)
