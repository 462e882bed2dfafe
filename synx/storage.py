"""
Synx Storage - Backend Capabilities
===================================

The sync engine talks to storage through three small capabilities:

- `StorageLike`: synchronous `get_item` / `set_item` / `remove_item`.
- `AsyncStorageLike`: the same three methods returning awaitables.
- `ChangeSource`: a stream of `ChangeEvent`s written by someone else.

`get_item` returns None for a missing key and never raises for it. `set_item`
and `remove_item` may raise (or return an awaitable that fails); the engine
reports those failures through its error hook.

`ExecutorStorage` turns any synchronous storage into an asynchronous one by
running calls on a thread pool.
"""

import asyncio
import concurrent.futures
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class ChangeEvent:
    """
    A key changed in storage, written by another process, tab or view.

    Attributes:
        key: The key that changed, or None when the whole storage was cleared.
        new_value: The stored text after the change, None if removed.
        old_value: The stored text before the change, when known.
    """

    key: Optional[str]
    new_value: Optional[str]
    old_value: Optional[str] = None

    def __repr__(self):
        if self.key is None:
            return "ChangeEvent(CLEAR)"
        if self.new_value is None:
            return f"ChangeEvent(REMOVE {self.key})"
        return f"ChangeEvent(SET {self.key}: {self.old_value!r} -> {self.new_value!r})"


ChangeHandler = Callable[[ChangeEvent], None]


@runtime_checkable
class StorageLike(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


@runtime_checkable
class AsyncStorageLike(Protocol):
    def get_item(self, key: str) -> Awaitable[Optional[str]]: ...

    def set_item(self, key: str, value: str) -> Awaitable[None]: ...

    def remove_item(self, key: str) -> Awaitable[None]: ...


@runtime_checkable
class ChangeSource(Protocol):
    def subscribe(self, handler: ChangeHandler) -> Any:
        """Returns a handle: a callable, or an object with `unsubscribe()`."""
        ...


def as_unsubscribe(handle: Any) -> Callable[[], None]:
    """Normalize a change source subscription handle to a plain callable."""
    unsubscribe = getattr(handle, "unsubscribe", None)
    if callable(unsubscribe):
        return unsubscribe
    if callable(handle):
        return handle
    raise TypeError(f"Change source returned an unusable handle: {handle!r}")


class ExecutorStorage:
    """
    Asynchronous adapter over a synchronous storage.

    Each call runs on a thread pool and returns an awaitable, so slow backends
    (files, network shares) do not block the event loop.

    Usage:
        storage = ExecutorStorage(JsonFileStorage("prefs.json"))
        value = await storage.get_item("theme")
    """

    def __init__(self, storage: StorageLike, max_workers: int = 1):
        self._storage = storage
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)

    @property
    def storage(self) -> StorageLike:
        return self._storage

    def _submit(self, func: Callable, *args) -> "asyncio.Future[Any]":
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(self._executor, func, *args)

    def get_item(self, key: str) -> "asyncio.Future[Optional[str]]":
        return self._submit(self._storage.get_item, key)

    def set_item(self, key: str, value: str) -> "asyncio.Future[None]":
        return self._submit(self._storage.set_item, key, value)

    def remove_item(self, key: str) -> "asyncio.Future[None]":
        return self._submit(self._storage.remove_item, key)

    def close(self) -> None:
        """Shut down the worker threads, waiting for queued calls."""
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
