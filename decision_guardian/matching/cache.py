from __future__ import annotations

import hashlib
import threading
from typing import Optional

from decision_guardian.constants import REGEX_CACHE_EVICT_FRACTION, REGEX_CACHE_SIZE

CacheKey = tuple[str, str, str]


class RegexResultCache:
    """Bounded, thread-safe map of regex verdicts.

    When full, the oldest ``evict_fraction`` of entries are dropped at once.
    """

    def __init__(
        self,
        max_size: int = REGEX_CACHE_SIZE,
        evict_fraction: float = REGEX_CACHE_EVICT_FRACTION,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.evict_count = max(1, int(max_size * evict_fraction))
        self._entries: dict[CacheKey, bool] = {}
        self._lock = threading.Lock()

    @staticmethod
    def make_key(pattern: str, flags: str, content: str) -> CacheKey:
        digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
        return (pattern, flags, digest)

    def get(self, key: CacheKey) -> Optional[bool]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: CacheKey, value: bool) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                for stale in list(self._entries)[: self.evict_count]:
                    del self._entries[stale]
            self._entries[key] = value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
