"""
Shared pytest fixtures and configuration for Synx tests.
"""

import pytest

from synx import ManualScheduler, MemoryStorage, SharedMemoryBackend


class RecordingStorage(MemoryStorage):
    """MemoryStorage that records every call made to it."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.calls = []

    def get_item(self, key):
        self.calls.append(("get", key))
        return super().get_item(key)

    def set_item(self, key, value):
        self.calls.append(("set", key, value))
        super().set_item(key, value)

    def remove_item(self, key):
        self.calls.append(("remove", key))
        super().remove_item(key)

    @property
    def writes(self):
        return [call for call in self.calls if call[0] != "get"]


class FailingStorage(RecordingStorage):
    """Storage whose operations can be made to raise on demand."""

    def __init__(self, initial=None, fail_get=None, fail_set=None, fail_remove=None):
        super().__init__(initial)
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.fail_remove = fail_remove

    def get_item(self, key):
        if self.fail_get is not None:
            raise self.fail_get
        return super().get_item(key)

    def set_item(self, key, value):
        if self.fail_set is not None:
            self.calls.append(("set-failed", key, value))
            raise self.fail_set
        super().set_item(key, value)

    def remove_item(self, key):
        if self.fail_remove is not None:
            raise self.fail_remove
        super().remove_item(key)


@pytest.fixture
def scheduler():
    """A ManualScheduler; nothing deferred runs until run_pending()."""
    return ManualScheduler()


@pytest.fixture
def storage():
    """Provide an empty RecordingStorage."""
    return RecordingStorage()


@pytest.fixture
def make_storage():
    """Factory for RecordingStorage / FailingStorage instances."""

    def _make(initial=None, **failures):
        if failures:
            return FailingStorage(initial, **failures)
        return RecordingStorage(initial)

    return _make


@pytest.fixture
def backend():
    """A SharedMemoryBackend for multi-writer scenarios."""
    return SharedMemoryBackend()


@pytest.fixture
def errors():
    """List collecting errors passed to an on_error hook (errors.append)."""
    return []
