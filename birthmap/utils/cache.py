from __future__ import annotations
from collections import OrderedDict
import threading
from typing import Any, Callable, Hashable, Optional

_MISSING = object()


class LRUCache:
    """Bounded, thread-safe LRU map. Values must be pure functions of their keys."""

    def __init__(self, capacity: int = 1024):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.store: "OrderedDict[Hashable, Any]" = OrderedDict()
        self.lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, default: Optional[Any] = None):
        with self.lock:
            if key in self.store:
                self.store.move_to_end(key)
                self.hits += 1
                return self.store[key]
            self.misses += 1
            return default

    def set(self, key: Hashable, value: Any):
        with self.lock:
            self.store[key] = value
            self.store.move_to_end(key)
            if len(self.store) > self.capacity:
                self.store.popitem(last=False)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        # compute() runs outside the lock; a race recomputes the same value
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = compute()
            self.set(key, value)
        return value

    def clear(self) -> None:
        with self.lock:
            self.store.clear()
            self.hits = self.misses = 0

    def __len__(self) -> int:
        return len(self.store)
