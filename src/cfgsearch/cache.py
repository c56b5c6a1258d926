from __future__ import annotations

from collections import OrderedDict
from typing import Any, Generic, Mapping, Optional, TypeVar

from cfgsearch.configuration import Configuration, canonical_key

T = TypeVar("T")


class ResultCache(Generic[T]):
    """
    Bounded LRU cache keyed by the canonical form of a configuration.

    get() hits and put() refresh recency; has() does not.
    """

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self._entries: "OrderedDict[str, T]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, config: Configuration | Mapping[str, Any]) -> Optional[T]:
        key = canonical_key(config)
        if key not in self._entries:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return self._entries[key]

    def put(self, config: Configuration | Mapping[str, Any], result: T) -> None:
        key = canonical_key(config)
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.capacity:
            self._entries.popitem(last=False)
        self._entries[key] = result

    def has(self, config: Configuration | Mapping[str, Any]) -> bool:
        return canonical_key(config) in self._entries

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)
