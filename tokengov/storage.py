"""
Key-Value Storage

Governance state is persisted through an abstract key-value store so the host
runtime decides where it actually lives. Keys are tuples whose first element
is a namespace (e.g. ``("proposal", 3)``); values are plain dicts produced by
the records' ``to_dict()`` methods.

``MemoryStore`` is the default single-replica backend.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Hashable, Iterator, Optional, Tuple

from .exceptions import StorageError

Key = Tuple[Hashable, ...]


class KeyValueStore(ABC):
    """
    Minimal store interface consumed by the governance registries.

    Every component built over one store shares its ``lock``, so registries
    and engines wrapping the same store serialise their multi-step updates
    against each other.
    """

    @property
    def lock(self):
        """Re-entrant lock held around read-modify-write sequences."""
        lock = self.__dict__.get("_update_lock")
        if lock is None:
            lock = self.__dict__.setdefault("_update_lock", threading.RLock())
        return lock

    @abstractmethod
    def get(self, key: Key) -> Optional[Dict[str, Any]]:
        """Return the value stored under *key*, or None."""

    @abstractmethod
    def put(self, key: Key, value: Dict[str, Any]) -> None:
        """Store *value* under *key*, replacing any previous value."""

    @abstractmethod
    def delete(self, key: Key) -> bool:
        """Remove *key*. Returns True if something was removed."""

    @abstractmethod
    def keys(self, namespace: Optional[str] = None) -> Iterator[Key]:
        """Iterate keys, optionally restricted to one namespace."""

    def contains(self, key: Key) -> bool:
        return self.get(key) is not None

    def put_if_absent(self, key: Key, value: Dict[str, Any]) -> bool:
        """
        Insert *value* only when *key* is unset.

        Returns True if the value was inserted. Backends that can do this
        natively should override it; the default relies on callers holding
        ``lock`` around the call.
        """
        if self.contains(key):
            return False
        self.put(key, value)
        return True


class MemoryStore(KeyValueStore):
    """
    In-process dict-backed store.

    Values are deep-copied on the way in and out so callers can never mutate
    stored state by holding on to a returned dict.
    """

    def __init__(self):
        self._data: Dict[Key, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _check_key(key: Key) -> None:
        if not isinstance(key, tuple) or not key:
            raise StorageError(f"Store keys must be non-empty tuples, got {key!r}")

    def get(self, key: Key) -> Optional[Dict[str, Any]]:
        self._check_key(key)
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def put(self, key: Key, value: Dict[str, Any]) -> None:
        self._check_key(key)
        if not isinstance(value, dict):
            raise StorageError(f"Store values must be dicts, got {type(value).__name__}")
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: Key) -> bool:
        self._check_key(key)
        with self._lock:
            return self._data.pop(key, None) is not None

    def put_if_absent(self, key: Key, value: Dict[str, Any]) -> bool:
        self._check_key(key)
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = copy.deepcopy(value)
            return True

    def keys(self, namespace: Optional[str] = None) -> Iterator[Key]:
        with self._lock:
            snapshot = list(self._data.keys())
        for key in snapshot:
            if namespace is None or key[0] == namespace:
                yield key

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __repr__(self) -> str:
        return f"<MemoryStore keys={len(self)}>"
