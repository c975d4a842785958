"""Small in-memory TTL cache for proxy endpoints.

Usage:
    _live_cache = TTLCache(ttl=5)

    hit, data = _live_cache.get(key)
    if hit:
        return data

    data = await fetch()
    _live_cache.set(key, data)
"""

import time
from typing import Hashable


class TTLCache:
    """Per-key values that expire `ttl` seconds after being set."""

    __slots__ = ("ttl", "max_entries", "_entries")

    def __init__(self, ttl: float, max_entries: int = 32):
        self.ttl = ttl
        self.max_entries = max_entries
        self._entries: dict[Hashable, tuple[float, object]] = {}

    def get(self, key: Hashable = None) -> tuple[bool, object]:
        """Return (hit, data). Expired entries are dropped."""
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        stored_at, data = entry
        if time.monotonic() - stored_at >= self.ttl:
            del self._entries[key]
            return False, None
        return True, data

    def set(self, key: Hashable, data: object) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            # Evict the oldest entry
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest]
        self._entries[key] = (time.monotonic(), data)

    def invalidate(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
