# src/core/bounded.py — v1
"""Fixed-capacity key/value store with an explicit eviction policy.

Used for the scorer's per-(task type, model) score table. Not thread-safe:
the owning component serializes access with its own lock.

Policies:
  - "lru":  reads and overwrites refresh recency; the least recently touched
            key is evicted first.
  - "fifo": insertion order only; overwrites keep the original position.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator
from typing import Generic, Literal, TypeVar

K = TypeVar("K")
V = TypeVar("V")

EvictionPolicy = Literal["lru", "fifo"]


class BoundedStore(Generic[K, V]):
    """Ordered map that evicts once ``capacity`` entries are exceeded."""

    def __init__(self, capacity: int, policy: EvictionPolicy = "lru") -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if policy not in ("lru", "fifo"):
            raise ValueError(f"Unknown eviction policy: {policy!r}")
        self._capacity = capacity
        self._policy = policy
        self._data: OrderedDict[K, V] = OrderedDict()
        self.evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def policy(self) -> EvictionPolicy:
        return self._policy

    def get(self, key: K) -> V | None:
        """Return the value for key, refreshing recency under LRU."""
        if key not in self._data:
            return None
        if self._policy == "lru":
            self._data.move_to_end(key)
        return self._data[key]

    def peek(self, key: K) -> V | None:
        """Return the value for key without touching recency."""
        return self._data.get(key)

    def put(self, key: K, value: V) -> K | None:
        """Insert or overwrite a value.

        Returns:
            The evicted key, if inserting pushed the store over capacity.
        """
        if key in self._data:
            self._data[key] = value
            if self._policy == "lru":
                self._data.move_to_end(key)
            return None

        self._data[key] = value
        if len(self._data) > self._capacity:
            evicted, _ = self._data.popitem(last=False)
            self.evictions += 1
            return evicted
        return None

    def delete(self, key: K) -> bool:
        return self._data.pop(key, None) is not None

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[K]:
        return list(self._data.keys())

    def values(self) -> list[V]:
        return list(self._data.values())

    def items(self) -> list[tuple[K, V]]:
        return list(self._data.items())

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._data.keys()))
