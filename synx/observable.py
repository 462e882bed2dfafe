"""
Synx Observable - Reactive Cell with Configurable Watching
==========================================================

The `Observable` holds the in-memory value that the sync engine mirrors into
storage. Subscribers choose how changes are detected and when they are
delivered:

- `deep=True` compares a structural snapshot of the value, so in-place
  mutation of nested data is seen as a change.
- `deep=False` compares by reference (scalars by value), so only replacing
  the value is a change.
- `flush` picks synchronous delivery or delivery before/after the next render
  boundary of the injected scheduler. Deferred deliveries coalesce: several
  changes before the flush produce one call with the latest value.

A cell created with `shallow=True` does not react to item assignment through
`cell[key] = ...`; only `set()` and `trigger()` notify.

Usage:
    cell = Observable("theme", {"mode": "dark"})
    sub = cell.subscribe(lambda value: print(value))
    cell["mode"] = "light"   # prints {'mode': 'light'}
    sub.unsubscribe()
"""

import copy
import math
import threading
from contextlib import contextmanager
from typing import Any, Callable, Generic, Iterator, List, Optional, TypeVar, Union

from .scheduler import FlushTiming, Scheduler

T = TypeVar("T")

_SCALARS = (type(None), bool, int, float, complex, str, bytes)

# Marks a baseline that could not be snapshotted; always compares as changed.
_UNCOPYABLE = object()


def has_changed(old: Any, new: Any) -> bool:
    """Reference comparison, except that scalars compare by value."""
    if old is new:
        return False
    if isinstance(old, _SCALARS) and isinstance(new, _SCALARS):
        if type(old) is not type(new):
            return True
        if isinstance(old, float) and math.isnan(old) and math.isnan(new):
            return False
        return old != new
    return True


def _snapshot(value: Any) -> Any:
    if isinstance(value, _SCALARS):
        return value
    try:
        return copy.deepcopy(value)
    except (TypeError, copy.Error):
        return _UNCOPYABLE


def _deep_changed(snapshot: Any, value: Any) -> bool:
    if snapshot is _UNCOPYABLE:
        return True
    if isinstance(snapshot, _SCALARS) or isinstance(value, _SCALARS):
        return has_changed(snapshot, value)
    if type(snapshot) is not type(value):
        return True
    try:
        return bool(snapshot != value)
    except (TypeError, ValueError):
        return True


class Subscription(Generic[T]):
    """
    A single watcher on an `Observable`.

    Keeps its own baseline of the last delivered value so that change
    detection and coalescing are per-subscriber.
    """

    def __init__(
        self,
        observable: "Observable[T]",
        callback: Callable[[T], Any],
        deep: bool = True,
        flush: FlushTiming = FlushTiming.SYNC,
        scheduler: Optional[Scheduler] = None,
    ):
        self.observable = observable
        self.callback = callback
        self.deep = deep
        self.flush = flush
        self.active = True
        self._scheduler = scheduler
        self._queued = False
        self._forced = False
        self._ignore_depth = 0
        self._baseline = self._capture(observable.value)

    def _capture(self, value: Any) -> Any:
        return _snapshot(value) if self.deep else value

    def _changed(self, value: Any) -> bool:
        if self.deep:
            return _deep_changed(self._baseline, value)
        return has_changed(self._baseline, value)

    def pause(self) -> None:
        """Stop delivering changes until `resume()`."""
        self.active = False

    def resume(self) -> None:
        """
        Resume delivery. Changes made while paused are absorbed into the
        baseline and not replayed.
        """
        self._baseline = self._capture(self.observable.value)
        self.active = True

    def unsubscribe(self) -> None:
        self.active = False
        self.observable._remove_subscription(self)

    @contextmanager
    def ignoring(self) -> Iterator[None]:
        """
        Changes made inside this block move the baseline without delivery.

        A delivery already queued before the block still runs, but it only
        calls back if the value differs from the updated baseline.
        """
        self._ignore_depth += 1
        try:
            yield
        finally:
            self._ignore_depth -= 1

    def _notify(self, force: bool = False) -> None:
        if not self.active:
            return
        if self._ignore_depth:
            self._baseline = self._capture(self.observable.value)
            return
        self._forced = self._forced or force
        if self.flush is FlushTiming.SYNC:
            self._deliver()
            return
        if not self._queued:
            self._queued = True
            self._scheduler.queue(self._deliver, self.flush)

    def _deliver(self) -> None:
        self._queued = False
        forced, self._forced = self._forced, False
        if not self.active:
            return
        value = self.observable.value
        if not forced and not self._changed(value):
            return
        self._baseline = self._capture(value)
        self.callback(value)


class Observable(Generic[T]):
    """
    A reactive value that notifies its subscriptions when it changes.

    Args:
        key: Name used in repr and debugging output.
        initial_value: Starting value.
        shallow: When True, item assignment on the cell does not notify.
    """

    def __init__(
        self,
        key: Optional[str] = None,
        initial_value: Optional[T] = None,
        shallow: bool = False,
    ) -> None:
        self._key = key or "<unnamed>"
        self._value = initial_value
        self._shallow = shallow
        self._subscriptions: List[Subscription[T]] = []
        self._lock = threading.RLock()

    @property
    def key(self) -> str:
        return self._key

    @property
    def shallow(self) -> bool:
        return self._shallow

    @property
    def value(self) -> Optional[T]:
        return self._value

    @value.setter
    def value(self, value: Optional[T]) -> None:
        self.set(value)

    def set(self, value: Optional[T]) -> "Observable[T]":
        old, self._value = self._value, value
        if has_changed(old, value):
            self._notify()
        return self

    def trigger(self) -> None:
        """Deliver the current value to every subscriber, changed or not."""
        self._notify(force=True)

    def subscribe(
        self,
        callback: Callable[[T], Any],
        deep: bool = True,
        flush: Union[FlushTiming, str] = FlushTiming.SYNC,
        scheduler: Optional[Scheduler] = None,
    ) -> Subscription[T]:
        """
        Watch this cell.

        Args:
            callback: Called with the new value.
            deep: Structural (True) or reference (False) change detection.
            flush: Delivery timing; PRE and POST need a scheduler.
            scheduler: Scheduler used for deferred delivery.

        Returns:
            The Subscription, which can be paused or unsubscribed.

        Raises:
            ValueError: If a deferred flush is requested without a scheduler.
        """
        flush = FlushTiming.coerce(flush)
        if flush is not FlushTiming.SYNC and scheduler is None:
            raise ValueError(f"flush={flush.value!r} requires a scheduler")
        subscription = Subscription(self, callback, deep, flush, scheduler)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, callback: Callable[[T], Any]) -> None:
        """Remove every subscription registered with this callback."""
        with self._lock:
            matching = [s for s in self._subscriptions if s.callback == callback]
        for subscription in matching:
            subscription.unsubscribe()

    def _remove_subscription(self, subscription: Subscription[T]) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self, force: bool = False) -> None:
        with self._lock:
            subscriptions = tuple(self._subscriptions)
        for subscription in subscriptions:
            subscription._notify(force)

    # In-place mutation of container values

    def __getitem__(self, key: Any) -> Any:
        return self._value[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        self._value[key] = value
        if not self._shallow:
            self._notify()

    def __delitem__(self, key: Any) -> None:
        del self._value[key]
        if not self._shallow:
            self._notify()

    def __contains__(self, item: Any) -> bool:
        return item in self._value

    def __len__(self) -> int:
        return len(self._value)

    def __iter__(self):
        return iter(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)

    def __str__(self) -> str:
        return str(self._value)

    def __repr__(self) -> str:
        return f"Observable({self._key!r}, {self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Observable):
            return self._value == other._value
        return self._value == other

    def __hash__(self) -> int:
        return id(self)
