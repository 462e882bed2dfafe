"""
Reactive Key-Value Storage
==========================

A shared in-memory backend with browser-tab notification semantics.

Each `StorageView` is one writer (a tab, a worker, a window) over the same
`SharedMemoryBackend`. A write through one view notifies subscribers of every
*other* view, never the writer itself, and only when the stored text actually
changed. Views are both a storage and a change source, so a view can be handed
to the sync engine on its own.

Usage:
    backend = SharedMemoryBackend()
    tab_a, tab_b = backend.view(), backend.view()

    sub = tab_b.subscribe(lambda event: print(f"Changed: {event}"))
    tab_a.set_item("theme", "dark")   # tab_b prints, tab_a does not
    sub.unsubscribe()
"""

import fnmatch
import logging
import threading
import weakref
from typing import Any, Callable, Dict, List, Optional

from ..storage import ChangeEvent, ChangeHandler


def _key_filter(
    keys: Optional[List[str]], pattern: Optional[str]
) -> Callable[[Optional[str]], bool]:
    if not keys and pattern is None:
        return lambda key: True
    wanted = frozenset(keys or ())

    def accepts(key: Optional[str]) -> bool:
        # key None is a clear(), which concerns every listener.
        if key is None or key in wanted:
            return True
        return pattern is not None and fnmatch.fnmatchcase(key, pattern)

    return accepts


class ViewListener:
    """Handle for one callback on a `StorageView`; pausable and removable."""

    def __init__(
        self,
        view: "StorageView",
        callback: ChangeHandler,
        accepts: Callable[[Optional[str]], bool],
    ):
        self._view_ref = weakref.ref(view)
        self.callback = callback
        self.accepts = accepts
        self.active = True

    def pause(self):
        self.active = False

    def resume(self):
        """Events that arrived while paused are not replayed."""
        self.active = True

    def unsubscribe(self):
        view = self._view_ref()
        if view is not None:
            view._detach(self)

    def _deliver(self, event: ChangeEvent):
        if not self.active or not self.accepts(event.key):
            return
        try:
            self.callback(event)
        except Exception as e:
            logging.error(f"Storage listener {self.callback!r} failed on {event}: {e}")


class SharedMemoryBackend:
    """
    Shared key-value data plus the set of views attached to it.

    Thread-safe: the data and the view registry are guarded by one lock.
    Notifications are dispatched outside of it.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._views: "weakref.WeakSet[StorageView]" = weakref.WeakSet()
        self._lock = threading.RLock()
        self._notification_count = 0

    def view(self) -> "StorageView":
        """Attach a new writer to this backend."""
        view = StorageView(self)
        with self._lock:
            self._views.add(view)
        return view

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)

    def _broadcast(self, origin: Optional["StorageView"], event: ChangeEvent) -> None:
        with self._lock:
            targets = [view for view in self._views if view is not origin]
            self._notification_count += 1
        for view in targets:
            view._dispatch(event)

    def _write(self, origin: Optional["StorageView"], key: str, value: Optional[str]):
        with self._lock:
            old_value = self._data.get(key)
            if old_value == value:
                return
            if value is None:
                del self._data[key]
            else:
                self._data[key] = value
        self._broadcast(origin, ChangeEvent(key, value, old_value))

    def set_item(self, key: str, value: str) -> None:
        """Write from outside any view; every view is notified."""
        self._write(None, key, str(value))

    def remove_item(self, key: str) -> None:
        self._write(None, key, None)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "keys": len(self._data),
                "views": len(self._views),
                "notifications_sent": self._notification_count,
            }


class StorageView:
    """
    One writer's handle on a `SharedMemoryBackend`.

    Implements the storage methods and `subscribe`, so it can serve as both
    the storage and the change source of a sync engine.
    """

    def __init__(self, backend: SharedMemoryBackend):
        self._backend = backend
        self._listeners: List[ViewListener] = []
        self._lock = threading.RLock()

    @property
    def backend(self) -> SharedMemoryBackend:
        return self._backend

    def get_item(self, key: str) -> Optional[str]:
        return self._backend.get_item(key)

    def set_item(self, key: str, value: str) -> None:
        self._backend._write(self, key, str(value))

    def remove_item(self, key: str) -> None:
        self._backend._write(self, key, None)

    def clear(self) -> None:
        """Remove every key; other views receive one event with key None."""
        with self._backend._lock:
            had_data = bool(self._backend._data)
            self._backend._data.clear()
        if had_data:
            self._backend._broadcast(self, ChangeEvent(None, None))

    def subscribe(
        self,
        callback: ChangeHandler,
        keys: Optional[List[str]] = None,
        pattern: Optional[str] = None,
    ) -> ViewListener:
        """
        Listen for changes made by other views.

        Args:
            callback: Receives each ChangeEvent.
            keys: Only report these keys.
            pattern: Only report keys matching this glob, e.g. "user:*".
                With both keys and pattern, a key matching either is reported.

        Returns:
            A ViewListener; call its unsubscribe() to stop listening.
        """
        listener = ViewListener(self, callback, _key_filter(keys, pattern))
        with self._lock:
            self._listeners.append(listener)
        return listener

    def _detach(self, listener: ViewListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _dispatch(self, event: ChangeEvent) -> None:
        with self._lock:
            listeners = tuple(self._listeners)
        for listener in listeners:
            listener._deliver(event)
