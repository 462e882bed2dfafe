"""Tests for the Observable cell and its subscriptions."""

import pytest

from synx import FlushTiming, Observable


@pytest.mark.unit
@pytest.mark.observable
def test_subscription_callback_receives_new_value():
    """Setting the cell delivers the new value."""
    cell = Observable("test", "initial")
    received = []
    cell.subscribe(received.append)

    cell.set("changed")

    assert received == ["changed"]


@pytest.mark.unit
@pytest.mark.observable
def test_set_returns_cell_for_chaining():
    """set() returns the cell."""
    cell = Observable("test", 1)
    assert cell.set(2) is cell
    assert cell.value == 2


@pytest.mark.unit
@pytest.mark.observable
def test_no_delivery_on_same_scalar_value():
    """Setting an equal scalar is not a change."""
    cell = Observable("test", 1000)
    received = []
    cell.subscribe(received.append)

    cell.set(int("1000"))
    cell.set(float("nan"))
    cell.set(float("nan"))

    assert len(received) == 1


@pytest.mark.unit
@pytest.mark.observable
@pytest.mark.edge_case
def test_type_change_between_equal_scalars_is_a_change():
    """1 and True compare equal but are different values."""
    cell = Observable("test", 1)
    received = []
    cell.subscribe(received.append)

    cell.set(True)

    assert received == [True]


@pytest.mark.unit
@pytest.mark.observable
def test_unsubscribe_stops_delivery():
    """Both the Subscription handle and unsubscribe(callback) detach."""
    cell = Observable("test", 0)
    first, second = [], []
    subscription = cell.subscribe(first.append)
    cell.subscribe(second.append)

    cell.set(1)
    subscription.unsubscribe()
    cell.unsubscribe(second.append)
    cell.set(2)

    assert first == [1]
    assert second == [1]


@pytest.mark.unit
@pytest.mark.observable
def test_deep_subscription_sees_item_assignment():
    """Item assignment on the cell is a change for deep watchers."""
    cell = Observable("prefs", {"theme": "dark"})
    received = []
    cell.subscribe(received.append, deep=True)

    cell["theme"] = "light"

    assert received == [{"theme": "light"}]


@pytest.mark.unit
@pytest.mark.observable
def test_reference_subscription_ignores_item_assignment():
    """Watchers with deep=False only see the value being replaced."""
    cell = Observable("prefs", {"theme": "dark"})
    received = []
    cell.subscribe(received.append, deep=False)

    cell["theme"] = "light"
    assert received == []

    cell.set({"theme": "light"})
    assert received == [{"theme": "light"}]


@pytest.mark.unit
@pytest.mark.observable
def test_shallow_cell_does_not_notify_on_item_assignment():
    """A shallow cell only notifies on set() and trigger()."""
    cell = Observable("prefs", {"theme": "dark"}, shallow=True)
    received = []
    cell.subscribe(received.append, deep=True)

    cell["theme"] = "light"
    assert received == []

    cell.trigger()
    assert received == [{"theme": "light"}]


@pytest.mark.unit
@pytest.mark.observable
def test_trigger_forces_delivery_of_unchanged_value():
    """trigger() delivers even when nothing changed."""
    cell = Observable("test", [1])
    received = []
    cell.subscribe(received.append, deep=False)

    cell.trigger()

    assert received == [[1]]


@pytest.mark.unit
@pytest.mark.observable
def test_deferred_flush_coalesces_changes(scheduler):
    """PRE delivery runs once with the latest value."""
    cell = Observable("test", 0)
    received = []
    cell.subscribe(received.append, flush=FlushTiming.PRE, scheduler=scheduler)

    cell.set(1)
    cell.set(2)
    cell.set(3)
    assert received == []

    scheduler.run_pending()
    assert received == [3]


@pytest.mark.unit
@pytest.mark.observable
def test_deferred_flush_skips_changes_that_were_undone(scheduler):
    """A value changed and changed back before the flush is not delivered."""
    cell = Observable("test", 0)
    received = []
    cell.subscribe(received.append, flush="post", scheduler=scheduler)

    cell.set(1)
    cell.set(0)
    scheduler.run_pending()

    assert received == []


@pytest.mark.unit
@pytest.mark.observable
@pytest.mark.edge_case
def test_deferred_flush_requires_scheduler():
    """PRE/POST without a scheduler is rejected at subscribe time."""
    cell = Observable("test", 0)
    with pytest.raises(ValueError):
        cell.subscribe(lambda value: None, flush="pre")


@pytest.mark.unit
@pytest.mark.observable
def test_ignoring_moves_baseline_without_delivery():
    """Changes inside ignoring() are absorbed; later changes compare to them."""
    cell = Observable("test", 1)
    received = []
    subscription = cell.subscribe(received.append)

    with subscription.ignoring():
        cell.set(5)
    assert received == []

    cell.set(6)
    assert received == [6]


@pytest.mark.unit
@pytest.mark.observable
def test_ignoring_cancels_out_a_queued_delivery(scheduler):
    """A queued delivery is dropped when an ignored change lands on top."""
    cell = Observable("test", 1)
    received = []
    subscription = cell.subscribe(received.append, flush="pre", scheduler=scheduler)

    cell.set(2)
    with subscription.ignoring():
        cell.set(9)
    scheduler.run_pending()

    assert received == []


@pytest.mark.unit
@pytest.mark.observable
def test_pause_and_resume():
    """Changes while paused are not replayed after resume."""
    cell = Observable("test", 0)
    received = []
    subscription = cell.subscribe(received.append)

    subscription.pause()
    cell.set(1)
    subscription.resume()
    cell.set(1)
    cell.set(2)

    assert received == [2]


@pytest.mark.unit
@pytest.mark.observable
def test_value_property_setter_notifies():
    """Assigning .value goes through set()."""
    cell = Observable("test", 0)
    received = []
    cell.subscribe(received.append)

    cell.value = 4

    assert received == [4]
    assert repr(cell) == "Observable('test', 4)"
