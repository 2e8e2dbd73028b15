"""
Caller-owned cache with per-entry expiry.
"""

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class ExpiringCache:
    """
    Small TTL cache. Each instance is owned by whoever constructs it; nothing is
    shared at module level.
    """

    def __init__(self, ttl_seconds: float, max_entries: int = 1024, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.misses += 1
            return default
        self.hits += 1
        return value

    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        if len(self._entries) >= self.max_entries and key not in self._entries:
            self.evict_expired()
            if len(self._entries) >= self.max_entries:
                # Drop the entry closest to expiry
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = (self._clock() + ttl, value)

    def __contains__(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry[0]

    def __len__(self) -> int:
        return len(self._entries)

    def evict_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
