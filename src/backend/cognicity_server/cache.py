"""In-process response cache with per-entry expiry.

Entries are either permanent (rarely changing layers such as infrastructure)
or temporary, living for a TTL. Keys are opaque to the cache: callers build a
CacheKey that encodes every parameter shaping the cached value, two requests
sharing a key are served the same entry.
"""
import enum
import logging
import threading
import time
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)


class Expiry(enum.Enum):
    PERMANENT = 'permanent'
    TEMPORARY = 'temporary'


class CacheKey(NamedTuple):
    endpoint: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def build(cls, endpoint: str, **params) -> 'CacheKey':
        return cls(endpoint, tuple(sorted(params.items())))


class _Entry(NamedTuple):
    value: Any
    expires_at: Optional[float]


class ResultCache:
    def __init__(self, default_ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[Any, _Entry] = {}
        self._lock = threading.Lock()
        self._inflight: Dict[Any, threading.Lock] = {}

    def get(self, key, default=None):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if entry.expires_at is not None and self._clock() >= entry.expires_at:
                del self._entries[key]
                return default
            return entry.value

    def put(self, key, value, ttl: Optional[float] = None):
        """Store `value`; without a ttl (seconds) it stays until overwritten."""
        if ttl is not None and ttl < 0:
            raise ValueError('ttl must not be negative')
        expires_at = None if ttl is None else self._clock() + ttl
        with self._lock:
            self._entries[key] = _Entry(value, expires_at)

    def store(self, key, value, expiry: Expiry):
        if expiry is Expiry.PERMANENT:
            self.put(key, value)
        else:
            self.put(key, value, ttl=self.default_ttl)

    def get_or_compute(self, key, compute: Callable[[], Any], expiry: Expiry = Expiry.TEMPORARY):
        """Return the cached value or compute it once, even under concurrent misses."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        with self._lock:
            key_lock = self._inflight.setdefault(key, threading.Lock())
        try:
            with key_lock:
                value = self.get(key, _MISSING)
                if value is _MISSING:
                    logger.debug('cache miss, computing %s', key)
                    value = compute()
                    self.store(key, value, expiry)
        finally:
            with self._lock:
                if self._inflight.get(key) is key_lock and not key_lock.locked():
                    del self._inflight[key]
        return value

    def delete(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)


_MISSING = object()
