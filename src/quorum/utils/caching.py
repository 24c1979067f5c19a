"""caching utilities: a thread-safe ttl cache for aggregated analyses and a no-op stand-in for tests"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Iterable, Optional, Tuple


def content_hash(source: str, agents: Iterable[str], mode: str) -> str:
    """deterministic key over source text, agent set and analysis mode"""
    base = json.dumps({"source": source, "agents": sorted(set(agents)), "mode": mode}, sort_keys=True)
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


class TTLCache:
    """lru cache with per-entry expiry. entries are never mutated once stored."""

    def __init__(self, maxsize: int = 256, ttl_seconds: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._cache[key]
                return None
            self._cache.move_to_end(key)
            return value

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self.maxsize:
                # evict least recently used
                self._cache.popitem(last=False)
            self._cache[key] = (self._clock() + self.ttl_seconds, value)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class NullCache:
    """cache that stores nothing"""

    def get(self, key: str) -> Optional[Any]:
        return None

    def put(self, key: str, value: Any) -> None:
        return None

    def clear(self) -> None:
        return None

    def __len__(self) -> int:
        return 0
