"""
Time-keyed cache for derived market data.

WHAT: Small TTL cache with an injectable clock and backing store
WHY: Price discovery is recomputed at most once per TTL window per key,
     and tests need to move time forward without sleeping
HOW: Store (value, expires_at) pairs; evict an entry when it is read after expiry
"""

import time
from typing import Any, Callable, Generic, MutableMapping, Optional, Tuple, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """
    Process-local TTL cache.

    There is no background sweeper and no single-flight: two concurrent misses
    for the same key both compute and the last writer wins.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        store: Optional[MutableMapping[str, Tuple[Any, float]]] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: MutableMapping[str, Tuple[Any, float]] = store if store is not None else {}

    def get(self, key: str) -> Optional[V]:
        entry = self._store.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            self._store.pop(key, None)
            return None
        return value

    def set(self, key: str, value: V) -> None:
        self._store[key] = (value, self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
