"""
Synx Storage Utils - Reference Backends
=======================================

Storages that can be handed to the sync engine directly.

Classes:
- MemoryStorage: process-local dict storage
- JsonFileStorage: persistent JSON document with an LRU read cache
- SharedMemoryBackend: shared data whose views notify one another
- StorageView: one writer's view on a SharedMemoryBackend (storage + change source)
"""

from .kv_store import JsonFileStorage, MemoryStorage
from .reactive_kv_store import SharedMemoryBackend, StorageView, ViewListener

__all__ = [
    "MemoryStorage",
    "JsonFileStorage",
    "SharedMemoryBackend",
    "StorageView",
    "ViewListener",
]
