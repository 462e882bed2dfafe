"""Tests for local-mutation event filters."""

import pytest

from synx import PausableFilter, bypass_filter, debounce_filter, throttle_filter


def _recorder():
    calls = []

    def make(label):
        return lambda: calls.append(label)

    return calls, make


@pytest.mark.unit
def test_bypass_filter_invokes_immediately():
    """bypass_filter runs every event."""
    calls, make = _recorder()
    bypass_filter(make("a"))
    bypass_filter(make("b"))
    assert calls == ["a", "b"]


@pytest.mark.unit
def test_debounce_runs_latest_after_quiet_period(scheduler):
    """Only the last event of a burst runs, after the delay."""
    calls, make = _recorder()
    debounced = debounce_filter(1.0, scheduler)

    debounced(make("a"))
    scheduler.advance(0.5)
    debounced(make("b"))
    scheduler.advance(0.9)
    assert calls == []

    scheduler.advance(0.2)
    assert calls == ["b"]


@pytest.mark.unit
def test_debounce_max_wait_bounds_the_delay(scheduler):
    """A continuous burst still runs once max_wait elapses."""
    calls, make = _recorder()
    debounced = debounce_filter(1.0, scheduler, max_wait=2.0)

    for label in "abcde":
        debounced(make(label))
        scheduler.advance(0.5)

    assert calls == ["d"]


@pytest.mark.unit
@pytest.mark.edge_case
def test_debounce_with_zero_delay_is_immediate(scheduler):
    """A non-positive delay degenerates to bypass."""
    calls, make = _recorder()
    debounced = debounce_filter(0, scheduler)
    debounced(make("a"))
    assert calls == ["a"]


@pytest.mark.unit
def test_throttle_leading_and_trailing(scheduler):
    """The first event runs at once, the last one of the window at its end."""
    calls, make = _recorder()
    throttled = throttle_filter(1.0, scheduler)

    throttled(make("a"))
    assert calls == ["a"]

    scheduler.advance(0.2)
    throttled(make("b"))
    throttled(make("c"))
    assert calls == ["a"]

    scheduler.advance(0.8)
    assert calls == ["a", "c"]


@pytest.mark.unit
def test_throttle_without_trailing_drops_window_events(scheduler):
    """trailing=False discards events inside the window."""
    calls, make = _recorder()
    throttled = throttle_filter(1.0, scheduler, trailing=False)

    throttled(make("a"))
    scheduler.advance(0.5)
    throttled(make("b"))
    scheduler.advance(1.0)
    throttled(make("c"))

    assert calls == ["a", "c"]


@pytest.mark.unit
def test_throttle_without_leading_waits_for_window(scheduler):
    """leading=False delays the first event to the end of the window."""
    calls, make = _recorder()
    throttled = throttle_filter(1.0, scheduler, leading=False)

    throttled(make("a"))
    assert calls == []
    scheduler.advance(1.0)
    assert calls == ["a"]


@pytest.mark.unit
def test_pausable_filter_drops_events_while_paused():
    """Paused events are dropped, not replayed on resume."""
    calls, make = _recorder()
    pausable = PausableFilter()

    pausable(make("a"))
    pausable.pause()
    assert not pausable.is_active
    pausable(make("b"))
    pausable.resume()
    pausable(make("c"))

    assert calls == ["a", "c"]
