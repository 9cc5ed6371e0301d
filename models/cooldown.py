"""Thread-safe last-fire tracking shared by alert and scaling rules."""
import threading
from datetime import timedelta


class CooldownTracker:
    """Maps a rule identity key to the time it last fired.

    Entries are refreshed on every fire and never removed; a stale entry is
    simply one whose cooldown has elapsed.
    """

    def __init__(self):
        self._last_fired = {}
        self._lock = threading.Lock()

    def _expires(self, key, minutes):
        last = self._last_fired.get(key)
        if last is None:
            return None
        return last + timedelta(minutes=minutes)

    def in_cooldown(self, key, minutes, now):
        with self._lock:
            expires = self._expires(key, minutes)
            return expires is not None and now < expires

    def remaining(self, key, minutes, now):
        """Seconds left in the cooldown window, 0 when idle."""
        with self._lock:
            expires = self._expires(key, minutes)
        if expires is None or now >= expires:
            return 0.0
        return (expires - now).total_seconds()

    def mark(self, key, now):
        with self._lock:
            self._last_fired[key] = now

    def try_acquire(self, key, minutes, now):
        """Atomically check the cooldown and, if idle, record a fire at `now`."""
        with self._lock:
            expires = self._expires(key, minutes)
            if expires is not None and now < expires:
                return False
            self._last_fired[key] = now
            return True

    def last_fired(self, key):
        with self._lock:
            return self._last_fired.get(key)

    def snapshot(self):
        with self._lock:
            return dict(self._last_fired)
