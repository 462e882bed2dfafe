"""
Key-Value Storage Implementations
=================================

Synchronous string-to-string storages usable as sync engine backends.

- MemoryStorage: process-local dict, the simplest possible backend.
- JsonFileStorage: one JSON document on disk, shared by every process that
  opens the same path. Reads go through an LRU cache from cachetools that is
  dropped whenever the file changes underneath it.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from cachetools import LRUCache


class MemoryStorage:
    """
    In-memory storage.

    Usage:
        storage = MemoryStorage()
        storage.set_item("key1", "value")
        storage.get_item("key1")  # "value"
        storage.remove_item("key1")
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = str(value)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: Any) -> bool:
        with self._lock:
            return key in self._data


class JsonFileStorage:
    """
    Persistent storage backed by a single JSON object file.

    Every write rewrites the file atomically (temporary file + rename), so a
    reader in another process sees either the old or the new document. Reads
    are cached per key and the cache is invalidated when the file is
    replaced or its modification time or size changes.

    Args:
        path: Location of the JSON document. Created on first write.
        cache_size: Number of keys kept in the read cache.
    """

    def __init__(self, path: Union[str, Path], cache_size: int = 256):
        self._path = Path(path)
        self._cache: LRUCache = LRUCache(maxsize=cache_size)
        self._signature: Optional[tuple] = None
        self._lock = threading.RLock()
        self._stats = {"gets": 0, "sets": 0, "removes": 0, "cache_hits": 0}

    @property
    def path(self) -> Path:
        return self._path

    def _file_signature(self) -> Optional[tuple]:
        try:
            stat = self._path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_ino, stat.st_mtime_ns, stat.st_size)

    def _load(self) -> Dict[str, str]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not text.strip():
            return {}
        document = json.loads(text)
        if not isinstance(document, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        return document

    def _dump(self, document: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self._path.parent), prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, sort_keys=True)
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        self._cache.clear()
        self._signature = self._file_signature()

    def _sync_cache(self) -> None:
        signature = self._file_signature()
        if signature != self._signature:
            self._cache.clear()
            self._signature = signature

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            self._stats["gets"] += 1
            self._sync_cache()
            if key in self._cache:
                self._stats["cache_hits"] += 1
                return self._cache[key]
            value = self._load().get(key)
            self._cache[key] = value
            return value

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._stats["sets"] += 1
            document = self._load()
            document[key] = str(value)
            self._dump(document)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._stats["removes"] += 1
            document = self._load()
            if key not in document:
                return
            del document[key]
            self._dump(document)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._load().keys())

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about storage operations."""
        with self._lock:
            stats = self._stats.copy()
            stats["cache_size"] = len(self._cache)
            stats["cache_hit_rate"] = (
                stats["cache_hits"] / stats["gets"] if stats["gets"] > 0 else 0
            )
            return stats
