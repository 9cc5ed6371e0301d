"""Generic TTL cache."""
import time
import threading


class TTLCache:
    """Thread-safe key-value cache with per-key TTL.

    Expired entries are dropped lazily on `get` and in bulk by
    `purge_expired`, which the maintenance scheduler calls periodically.
    """

    def __init__(self, default_ttl=300, clock=time.time):
        self._store = {}
        self._lock = threading.Lock()
        self.default_ttl = default_ttl
        self._clock = clock
        self.hits = 0
        self.misses = 0

    def get(self, key):
        """Get value if exists and not expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self.misses += 1
                return None
            if self._clock() > entry["expires"]:
                del self._store[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry["value"]

    def set(self, key, value, ttl=None):
        """Set key with TTL in seconds."""
        with self._lock:
            self._store[key] = {
                "value": value,
                "expires": self._clock() + (self.default_ttl if ttl is None else ttl),
            }

    def invalidate(self, key):
        with self._lock:
            self._store.pop(key, None)

    def purge_expired(self):
        """Remove every expired entry; returns how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._store.items() if now > e["expires"]]
            for k in expired:
                del self._store[k]
        return len(expired)

    def clear(self):
        with self._lock:
            self._store.clear()

    def __len__(self):
        with self._lock:
            return len(self._store)

    def stats(self):
        with self._lock:
            total = self.hits + self.misses
            return {
                "size": len(self._store),
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": (self.hits / total) if total else 0.0,
            }
