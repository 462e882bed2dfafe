"""
Synx Scheduler - Injected Delivery Timing
=========================================

The sync engine never owns an event loop. Everything it defers (external
change handling, pre/post flushed writes, debounce and throttle timers) goes
through a `Scheduler` handed to it in its options.

Two implementations ship with the package:

- `AsyncioScheduler` runs work on an asyncio event loop.
- `ManualScheduler` queues work until `run_pending()` or `advance()` is
  called, with a virtual clock. Useful in tests and in programs that have
  their own main loop.

Flush timings relative to a rendering boundary:

    tick callbacks -> PRE jobs -> render hooks -> POST jobs
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, List, Optional, Tuple, Union

Callback = Callable[[], Any]


class FlushTiming(Enum):
    """When a watched change is delivered relative to other scheduled work."""

    PRE = "pre"
    POST = "post"
    SYNC = "sync"

    @classmethod
    def coerce(cls, value: Union["FlushTiming", str]) -> "FlushTiming":
        """
        Accept an enum member or one of its string spellings.

        Raises:
            ValueError: If the value names no flush timing.
        """
        if isinstance(value, cls):
            return value
        try:
            return _FLUSH_ALIASES[value]
        except (KeyError, TypeError):
            raise ValueError(f"Unknown flush timing: {value!r}") from None


_FLUSH_ALIASES = {
    "pre": FlushTiming.PRE,
    "before-render": FlushTiming.PRE,
    "post": FlushTiming.POST,
    "after-render": FlushTiming.POST,
    "sync": FlushTiming.SYNC,
    "synchronous": FlushTiming.SYNC,
}


class Cancellable:
    """Handle returned by `Scheduler.call_later`."""

    def cancel(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class Scheduler(ABC):
    """Capability used by cells, filters and the engine to defer work."""

    @abstractmethod
    def defer(self, callback: Callback) -> None:
        """Run callback at the next scheduling opportunity, never inline."""

    @abstractmethod
    def queue(self, callback: Callback, timing: FlushTiming) -> None:
        """Run callback before (PRE) or after (POST) the next render boundary."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> Cancellable:
        """Run callback after `delay` seconds."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds on this scheduler's clock."""


class _ManualTimer(Cancellable):
    __slots__ = ("when", "callback", "cancelled")

    def __init__(self, when: float, callback: Callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """
    Scheduler driven explicitly by its owner.

    Nothing runs until `run_pending()` is called. Timers are driven by a
    virtual clock that only moves through `advance()`.

    Usage:
        scheduler = ManualScheduler()
        scheduler.defer(lambda: print("later"))
        scheduler.run_pending()  # prints "later"
    """

    def __init__(self) -> None:
        self._ticks: Deque[Callback] = deque()
        self._pre: Deque[Callback] = deque()
        self._post: Deque[Callback] = deque()
        self._render_hooks: List[Callback] = []
        self._timers: List[Tuple[float, int, _ManualTimer]] = []
        self._sequence = itertools.count()
        self._clock = 0.0

    def defer(self, callback: Callback) -> None:
        self._ticks.append(callback)

    def queue(self, callback: Callback, timing: FlushTiming) -> None:
        if timing is FlushTiming.SYNC:
            callback()
        elif timing is FlushTiming.PRE:
            self._pre.append(callback)
        else:
            self._post.append(callback)

    def call_later(self, delay: float, callback: Callback) -> Cancellable:
        timer = _ManualTimer(self._clock + max(delay, 0.0), callback)
        heapq.heappush(self._timers, (timer.when, next(self._sequence), timer))
        return timer

    def now(self) -> float:
        return self._clock

    def on_render(self, hook: Callback) -> None:
        """Register a hook that runs at every render boundary."""
        self._render_hooks.append(hook)

    @property
    def pending(self) -> int:
        """Number of queued callbacks, excluding timers."""
        return len(self._ticks) + len(self._pre) + len(self._post)

    def run_pending(self) -> int:
        """
        Run queued work until every queue is empty.

        Returns:
            Number of callbacks executed, render hooks excluded.
        """
        executed = 0
        while self._ticks or self._pre or self._post:
            while self._ticks:
                self._ticks.popleft()()
                executed += 1
            if not (self._pre or self._post):
                continue
            while self._pre:
                self._pre.popleft()()
                executed += 1
            for hook in list(self._render_hooks):
                hook()
            while self._post:
                self._post.popleft()()
                executed += 1
        return executed

    def advance(self, seconds: float) -> int:
        """
        Move the virtual clock forward, firing due timers in order.

        Queued work is drained before the clock moves and after every timer.
        """
        executed = self.run_pending()
        deadline = self._clock + seconds
        while self._timers and self._timers[0][0] <= deadline:
            when, _, timer = heapq.heappop(self._timers)
            self._clock = max(self._clock, when)
            if timer.cancelled:
                continue
            timer.callback()
            executed += 1 + self.run_pending()
        self._clock = deadline
        return executed


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by an asyncio event loop.

    Args:
        loop: Loop to schedule on. When omitted the running loop is looked up
            on every call, so the scheduler must be used from inside it.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def defer(self, callback: Callback) -> None:
        self.loop.call_soon(callback)

    def queue(self, callback: Callback, timing: FlushTiming) -> None:
        loop = self.loop
        if timing is FlushTiming.SYNC:
            callback()
        elif timing is FlushTiming.PRE:
            loop.call_soon(callback)
        else:
            # One extra hop lands after PRE jobs queued in the same iteration.
            loop.call_soon(loop.call_soon, callback)

    def call_later(self, delay: float, callback: Callback) -> Cancellable:
        return self.loop.call_later(delay, callback)

    def now(self) -> float:
        return self.loop.time()
