"""Bounded LRU cache with optional time-to-live.

Used for the per-server health cache (with TTL) and the generated
function cache (without TTL). All operations are single-step and never
await, so interleaved coroutines cannot observe a half-applied write.
"""

import time
from collections import OrderedDict
from typing import Callable, Generic, Iterator, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """
    Least-recently-used cache bounded by entry count.

    Reading an entry refreshes its recency but not its age, so a value
    read constantly still expires once its TTL has elapsed.
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries before eviction
            ttl_seconds: Entry lifetime in seconds, None for no expiry
            clock: Monotonic time source
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[K, tuple[V, float]] = OrderedDict()

    def _is_expired(self, stored_at: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - stored_at >= self.ttl_seconds

    def get(self, key: K) -> Optional[V]:
        """Return the live value for key, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, stored_at = entry
        if self._is_expired(stored_at):
            del self._entries[key]
            return None

        self._entries.move_to_end(key)
        return value

    def set(self, key: K, value: V) -> None:
        """Insert or overwrite key, evicting the least recently used entry if full."""
        self._entries[key] = (value, self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def delete(self, key: K) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def evict_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        expired = [
            key for key, (_, stored_at) in self._entries.items()
            if self._is_expired(stored_at)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def values(self) -> list[V]:
        """Snapshot of live values, least recently used first."""
        self.evict_expired()
        return [value for value, _ in self._entries.values()]

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not self._is_expired(entry[1])

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._entries))
