"""
Synx Sync - Keeping an Observable in Step with Storage
======================================================

`sync()` binds one storage key to an `Observable` cell:

1. On creation the key is read. A stored value is decoded into the cell; a
   missing one leaves the default in place and, when `write_defaults` is on,
   writes the default back once.
2. Every accepted mutation of the cell is written: `None` removes the key,
   anything else is serialized and set. There is no diffing against what is
   already stored.
3. Changes announced by the change source for the same key are applied to
   the cell at the next scheduling opportunity, never inside the
   notification itself. A removal resets the cell to the default.

Values that come *from* storage are applied without being written back.

Every failure along the way (reading, decoding, encoding, writing) is wrapped
in a `SyncError` subclass and passed to `on_error`; the engine keeps running
and the cell falls back to the default where a read failed.

Asynchronous storages are supported: when `get_item` returns an awaitable the
load finishes on the event loop (see `wait_until_ready()`), and awaitables
returned by writes are tracked fire-and-forget. Successive async writes are
not ordered against each other.

Usage:
    backend = SharedMemoryBackend()
    scheduler = ManualScheduler()
    counter = sync("counter", 0, backend.view(), scheduler=scheduler)
    counter.value += 1            # writes "1"
    counter.dispose()
"""

import asyncio
import copy
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, Set, TypeVar, Union

from .errors import ParseError, ReadError, SerializeError, SyncError, WriteError
from .filters import bypass_filter
from .observable import Observable, Subscription
from .options import SyncOptions
from .scheduler import AsyncioScheduler, FlushTiming, Scheduler
from .serializers import STORAGE_SERIALIZERS, Serializer, Tag, guess_serializer_tag
from .storage import ChangeEvent, ChangeSource, as_unsubscribe

T = TypeVar("T")


class SyncState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    SYNCED = "synced"
    READING_EXTERNAL = "reading_external"
    WRITING_LOCAL = "writing_local"
    DISPOSED = "disposed"


def _copy_default(value: Any) -> Any:
    try:
        return copy.deepcopy(value)
    except (TypeError, copy.Error):
        return value


class StorageSync(Generic[T]):
    """
    Synchronization engine for one storage key.

    Args:
        key: Storage key to mirror.
        initial_value: Default value, or an Observable to adopt as the cell
            (its current value becomes the default). An adopted cell keeps
            its own `shallow` setting and `options.shallow` is not applied.
        storage: Sync or async storage.
        options: Engine configuration.
    """

    def __init__(
        self,
        key: str,
        initial_value: Union[T, Observable[T], None],
        storage: Any,
        options: Optional[SyncOptions[T]] = None,
    ) -> None:
        if storage is None:
            raise ValueError("storage is required")
        self._options = options or SyncOptions()
        self._key = key
        self._storage = storage
        self._state = SyncState.UNINITIALIZED

        if isinstance(initial_value, Observable):
            self._cell: Observable[T] = initial_value
            raw_default = initial_value.value
        else:
            self._cell = Observable(key, initial_value, shallow=self._options.shallow)
            raw_default = initial_value
        self._default = _copy_default(raw_default)

        self._tag = guess_serializer_tag(raw_default)
        self._serializer: Serializer[T] = (
            self._options.serializer or STORAGE_SERIALIZERS[self._tag]
        )

        self._change_source = self._resolve_change_source()
        self._scheduler = self._resolve_scheduler()
        self._event_filter = self._options.event_filter or bypass_filter

        self._subscription: Optional[Subscription[T]] = None
        self._unsubscribe_source: Optional[Callable[[], None]] = None
        self._ready: Optional["asyncio.Future[None]"] = None
        self._pending_writes: Set["asyncio.Future[Any]"] = set()

        self._initialize()

    # ------------------------------------------------------------------ setup

    def _resolve_change_source(self) -> Optional[ChangeSource]:
        if not self._options.listen_to_storage_changes:
            return None
        if self._options.change_source is not None:
            return self._options.change_source
        if callable(getattr(self._storage, "subscribe", None)):
            return self._storage
        return None

    def _resolve_scheduler(self) -> Optional[Scheduler]:
        if self._options.scheduler is not None:
            return self._options.scheduler
        try:
            return AsyncioScheduler(asyncio.get_running_loop())
        except RuntimeError:
            pass
        if self._options.flush is not FlushTiming.SYNC:
            raise ValueError(
                f"flush={self._options.flush.value!r} needs a scheduler or a running event loop"
            )
        if self._change_source is not None:
            raise ValueError(
                "listening to storage changes needs a scheduler or a running event loop"
            )
        return None

    def _initialize(self) -> None:
        self._state = SyncState.LOADING
        try:
            raw = self._storage.get_item(self._key)
        except Exception as exc:
            self._report(ReadError, exc)
            self._finish_load(None, read_failed=True)
            return

        if inspect.isawaitable(raw):
            self._ready = asyncio.ensure_future(self._load_async(raw))
        else:
            self._finish_load(raw)

    async def _load_async(self, pending: Awaitable[Optional[str]]) -> None:
        try:
            raw = await pending
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._state is SyncState.DISPOSED:
                return
            self._report(ReadError, exc)
            self._finish_load(None, read_failed=True)
            return
        if self._state is SyncState.DISPOSED:
            return
        self._finish_load(raw)

    def _finish_load(self, raw: Optional[str], read_failed: bool = False) -> None:
        # The error hook may have disposed the engine.
        if self._state is SyncState.DISPOSED:
            return
        if raw is None:
            self._cell.set(self._fresh_default())
            if (
                not read_failed
                and self._options.write_defaults
                and self._default is not None
            ):
                logging.debug(f"Writing default for missing key {self._key!r}")
                self._write(self._cell.value)
        else:
            value = self._decode(raw)
            self._cell.set(self._fresh_default() if value is _FAILED else value)
        if self._state is SyncState.DISPOSED:
            return
        self._start()

    def _start(self) -> None:
        self._subscription = self._cell.subscribe(
            self._on_local_change,
            deep=self._options.deep,
            flush=self._options.flush,
            scheduler=self._scheduler,
        )
        if self._change_source is not None:
            self._unsubscribe_source = as_unsubscribe(
                self._change_source.subscribe(self._on_storage_event)
            )
        self._state = SyncState.SYNCED
        logging.debug(f"Storage sync for {self._key!r} ready ({self._tag.value})")

    # ------------------------------------------------------------ read path

    def _fresh_default(self) -> Optional[T]:
        return _copy_default(self._default)

    def _decode(self, raw: str) -> Any:
        try:
            return self._serializer.read(raw)
        except Exception as exc:
            self._report(ParseError, exc)
            return _FAILED

    def _on_storage_event(self, event: ChangeEvent) -> None:
        if event.key != self._key or self._state is SyncState.DISPOSED:
            return
        self._scheduler.defer(lambda: self._apply_external(event))

    def _apply_external(self, event: ChangeEvent) -> None:
        if self._state is SyncState.DISPOSED:
            return
        self._state = SyncState.READING_EXTERNAL
        try:
            if event.new_value is None:
                self._assign(self._fresh_default())
            else:
                value = self._decode(event.new_value)
                if self._state is SyncState.DISPOSED:
                    return
                if value is not _FAILED:
                    self._assign(value)
                else:
                    self._assign(self._fresh_default())
            logging.debug(f"Applied external change to {self._key!r}")
        finally:
            if self._state is SyncState.READING_EXTERNAL:
                self._state = SyncState.SYNCED

    def _assign(self, value: Optional[T]) -> None:
        with self._subscription.ignoring():
            self._cell.set(value)

    # ----------------------------------------------------------- write path

    def _on_local_change(self, value: Optional[T]) -> None:
        if self._state is SyncState.DISPOSED:
            return
        self._event_filter(self._flush_local)

    def _flush_local(self) -> None:
        if self._state is SyncState.DISPOSED:
            return
        self._write(self._cell.value)

    def _write(self, value: Optional[T]) -> None:
        previous = self._state
        self._state = SyncState.WRITING_LOCAL
        try:
            if value is None:
                result = self._storage.remove_item(self._key)
            else:
                try:
                    raw = self._serializer.write(value)
                except Exception as exc:
                    self._report(SerializeError, exc)
                    return
                result = self._storage.set_item(self._key, raw)
        except Exception as exc:
            self._report(WriteError, exc)
            return
        finally:
            if self._state is SyncState.WRITING_LOCAL:
                self._state = previous
        if inspect.isawaitable(result):
            self._track(result)

    def _track(self, pending: Awaitable[Any]) -> None:
        future = asyncio.ensure_future(pending)
        self._pending_writes.add(future)
        future.add_done_callback(self._write_done)

    def _write_done(self, future: "asyncio.Future[Any]") -> None:
        self._pending_writes.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self._report(WriteError, exc)

    # --------------------------------------------------------------- errors

    def _report(self, kind: type, exc: BaseException) -> None:
        if isinstance(exc, SyncError):
            error = exc
            if error.key is None:
                error.key = self._key
        else:
            error = kind(f"{kind.__name__} for key {self._key!r}: {exc}", self._key)
            error.__cause__ = exc
        self._options.on_error(error)

    # --------------------------------------------------------------- public

    @property
    def key(self) -> str:
        return self._key

    @property
    def cell(self) -> Observable[T]:
        return self._cell

    @property
    def value(self) -> Optional[T]:
        return self._cell.value

    @value.setter
    def value(self, value: Optional[T]) -> None:
        self._cell.set(value)

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def tag(self) -> Tag:
        return self._tag

    @property
    def serializer(self) -> Serializer[T]:
        return self._serializer

    @property
    def default(self) -> Optional[T]:
        return self._fresh_default()

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    async def wait_until_ready(self) -> None:
        """Wait for an asynchronous initial load. Returns at once otherwise."""
        if self._ready is not None and not self._ready.done():
            await asyncio.shield(self._ready)

    async def drain(self) -> None:
        """Wait for every in-flight asynchronous write to settle."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    def dispose(self) -> None:
        """Stop listening to the cell and the change source. Idempotent."""
        if self._state is SyncState.DISPOSED:
            return
        self._state = SyncState.DISPOSED
        if self._ready is not None and not self._ready.done():
            self._ready.cancel()
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._unsubscribe_source is not None:
            self._unsubscribe_source()
            self._unsubscribe_source = None
        logging.debug(f"Storage sync for {self._key!r} disposed")

    def __enter__(self) -> "StorageSync[T]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"StorageSync({self._key!r}, {self._cell.value!r}, state={self._state.value})"


_FAILED = object()


def sync(
    key: str,
    initial_value: Union[T, Observable[T], None],
    storage: Any,
    options: Optional[SyncOptions[T]] = None,
    **kwargs: Any,
) -> StorageSync[T]:
    """
    Bind `key` in `storage` to an observable cell.

    Args:
        key: Storage key.
        initial_value: Default value or an Observable to adopt.
        storage: Sync or async storage.
        options: A SyncOptions instance. Alternatively pass its fields as
            keyword arguments.

    Returns:
        The running StorageSync engine; read and write through `.value` or
        `.cell`, and call `dispose()` when done.

    Raises:
        TypeError: If both `options` and keyword options are given.
    """
    if options is not None and kwargs:
        raise TypeError("pass either options or keyword options, not both")
    if options is None:
        options = SyncOptions(**kwargs)
    return StorageSync(key, initial_value, storage, options)
