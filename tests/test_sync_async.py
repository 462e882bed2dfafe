"""Tests for the storage sync engine with asynchronous storages."""

import asyncio

import pytest

from synx import (
    ExecutorStorage,
    MemoryStorage,
    ReadError,
    SyncState,
    WriteError,
    sync,
)


class AsyncMemoryStorage:
    """Coroutine-based storage with optional latency and failures."""

    def __init__(self, initial=None, delay=0.0):
        self.data = dict(initial or {})
        self.delay = delay
        self.calls = []
        self.fail_get = None
        self.fail_set = None

    async def get_item(self, key):
        await asyncio.sleep(self.delay)
        if self.fail_get is not None:
            raise self.fail_get
        return self.data.get(key)

    # Calls are recorded when issued, not when the coroutine first runs.

    def set_item(self, key, value):
        self.calls.append(("set", key, value))
        return self._set(key, value)

    def remove_item(self, key):
        self.calls.append(("remove", key))
        return self._remove(key)

    async def _set(self, key, value):
        await asyncio.sleep(self.delay)
        if self.fail_set is not None:
            raise self.fail_set
        self.data[key] = value

    async def _remove(self, key):
        await asyncio.sleep(self.delay)
        self.data.pop(key, None)


@pytest.mark.asyncio
async def test_async_load_keeps_default_until_ready():
    """The cell holds the default while the load is in flight."""
    storage = AsyncMemoryStorage({"k": "7"}, delay=0.01)

    counter = sync("k", 42, storage)
    assert counter.state is SyncState.LOADING
    assert counter.value == 42

    await counter.wait_until_ready()
    assert counter.value == 7
    assert counter.state is SyncState.SYNCED
    assert storage.calls == []


@pytest.mark.asyncio
async def test_async_missing_key_writes_default():
    """A missing key is written back once the load completes."""
    storage = AsyncMemoryStorage()

    counter = sync("k", 42, storage)
    await counter.wait_until_ready()
    await counter.drain()

    assert storage.calls == [("set", "k", "42")]
    assert storage.data == {"k": "42"}


@pytest.mark.asyncio
async def test_async_writes_are_issued_without_waiting():
    """Each mutation issues its write immediately; drain() awaits them all."""
    storage = AsyncMemoryStorage()
    counter = sync("k", 0, storage, write_defaults=False)
    await counter.wait_until_ready()

    counter.value = 1
    counter.value = 2
    counter.value = None

    assert storage.calls == [("set", "k", "1"), ("set", "k", "2"), ("remove", "k")]
    assert counter.pending_writes == 3

    await counter.drain()
    assert counter.pending_writes == 0
    assert "k" not in storage.data


@pytest.mark.asyncio
async def test_async_read_failure_is_contained():
    """A rejected get reports ReadError and keeps the default."""
    storage = AsyncMemoryStorage()
    storage.fail_get = OSError("offline")
    errors = []

    counter = sync("k", 3, storage, on_error=errors.append)
    await counter.wait_until_ready()

    assert counter.value == 3
    assert [type(e) for e in errors] == [ReadError]
    assert storage.calls == []


@pytest.mark.asyncio
async def test_async_write_failure_is_reported():
    """A rejected set reaches the error hook as a WriteError."""
    storage = AsyncMemoryStorage()
    storage.fail_set = OSError("quota")
    errors = []

    counter = sync("k", 0, storage, write_defaults=False, on_error=errors.append)
    await counter.wait_until_ready()
    counter.value = 5
    await counter.drain()

    assert [type(e) for e in errors] == [WriteError]
    assert isinstance(errors[0].__cause__, OSError)


@pytest.mark.asyncio
async def test_dispose_during_load_cancels_it():
    """Disposing before the load finishes leaves the cell at the default."""
    storage = AsyncMemoryStorage({"k": "7"}, delay=0.05)

    counter = sync("k", 42, storage)
    counter.dispose()
    await asyncio.sleep(0.1)

    assert counter.value == 42
    assert counter.state is SyncState.DISPOSED


@pytest.mark.asyncio
async def test_pre_flush_uses_running_loop_by_default():
    """Inside an event loop, deferred timings run on that loop."""
    storage = MemoryStorage()
    counter = sync("k", 0, storage, write_defaults=False, flush="pre")

    counter.value = 1
    counter.value = 2
    assert storage.get_item("k") is None

    await asyncio.sleep(0)
    assert storage.get_item("k") == "2"


@pytest.mark.asyncio
async def test_external_change_on_running_loop(backend):
    """Change events are applied on a later loop iteration."""
    writer = backend.view()
    reader = sync("k", "a", backend.view())

    writer.set_item("k", "b")
    assert reader.value == "a"

    await asyncio.sleep(0)
    assert reader.value == "b"


@pytest.mark.asyncio
async def test_executor_storage_end_to_end():
    """A thread-pool wrapped sync storage works as an async backend."""
    inner = MemoryStorage({"k": "[1,2]"})
    with ExecutorStorage(inner) as storage:
        data = sync("k", [], storage)
        await data.wait_until_ready()
        assert data.value == [1, 2]

        data.cell.set([3])
        await data.drain()

    assert inner.get_item("k") == "[3]"
