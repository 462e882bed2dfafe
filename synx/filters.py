"""
Synx Event Filters - Narrowing Local Mutation Delivery
======================================================

An event filter sits between a cell's change delivery and the write it would
cause. It receives a zero-argument `invoke` thunk and decides whether and
when to call it:

    def my_filter(invoke):
        if allowed():
            invoke()

Filters that wait use the scheduler's clock, so the same code runs on an
asyncio loop or under a `ManualScheduler` in tests.
"""

from typing import Callable, Optional

from .scheduler import Cancellable, Scheduler

Invoke = Callable[[], None]
EventFilter = Callable[[Invoke], None]


def bypass_filter(invoke: Invoke) -> None:
    """Let every event through immediately."""
    invoke()


def debounce_filter(
    delay: float, scheduler: Scheduler, max_wait: Optional[float] = None
) -> EventFilter:
    """
    Only run the latest event once `delay` seconds pass without another one.

    Args:
        delay: Quiet period in seconds. Zero or less runs immediately.
        scheduler: Scheduler providing the timers.
        max_wait: Upper bound on how long a burst may postpone the call.

    Returns:
        An event filter.
    """
    timer: Optional[Cancellable] = None
    max_timer: Optional[Cancellable] = None
    latest: Optional[Invoke] = None

    def _fire() -> None:
        nonlocal timer, max_timer, latest
        for handle in (timer, max_timer):
            if handle is not None:
                handle.cancel()
        timer = max_timer = None
        invoke, latest = latest, None
        if invoke is not None:
            invoke()

    def _filter(invoke: Invoke) -> None:
        nonlocal timer, max_timer, latest
        latest = invoke
        if timer is not None:
            timer.cancel()
            timer = None
        if delay <= 0:
            _fire()
            return
        if max_wait is not None and max_timer is None:
            max_timer = scheduler.call_later(max_wait, _fire)
        timer = scheduler.call_later(delay, _fire)

    return _filter


def throttle_filter(
    interval: float,
    scheduler: Scheduler,
    trailing: bool = True,
    leading: bool = True,
) -> EventFilter:
    """
    Run at most one event per `interval` seconds.

    Args:
        interval: Window length in seconds.
        scheduler: Scheduler providing the clock and timers.
        trailing: Run the last event of a window when the window closes.
        leading: Run the first event of a window immediately.

    Returns:
        An event filter.
    """
    last_run: Optional[float] = None
    timer: Optional[Cancellable] = None
    latest: Optional[Invoke] = None

    def _run_trailing() -> None:
        nonlocal last_run, timer, latest
        timer = None
        invoke, latest = latest, None
        if invoke is not None:
            last_run = scheduler.now()
            invoke()

    def _filter(invoke: Invoke) -> None:
        nonlocal last_run, timer, latest
        now = scheduler.now()
        if last_run is None and not leading:
            last_run = now
        elapsed = float("inf") if last_run is None else now - last_run

        if elapsed >= interval and timer is None:
            last_run = now
            invoke()
            return

        if trailing:
            latest = invoke
            if timer is None:
                timer = scheduler.call_later(interval - elapsed, _run_trailing)

    return _filter


class PausableFilter:
    """
    Event filter that can be switched off and on.

    Events arriving while paused are dropped, not replayed.
    """

    def __init__(self, inner: EventFilter = bypass_filter):
        self._inner = inner
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    def pause(self) -> None:
        self._active = False

    def resume(self) -> None:
        self._active = True

    def __call__(self, invoke: Invoke) -> None:
        if self._active:
            self._inner(invoke)
