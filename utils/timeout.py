"""Bounded-time invocation of external adapter calls."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

from models.errors import AdapterError, AdapterTimeout

logger = logging.getLogger("opsmonitor.timeout")

POOL_WORKERS = 8

# One pool per adapter kind: calls that hang keep their worker until they
# return on their own, and may only exhaust their own pool.
SOURCE_POOL = "source"
NOTIFY_POOL = "notify"
SCALER_POOL = "scaler"


class _AdapterPool:
    def __init__(self, name, workers=POOL_WORKERS):
        self.name = name
        self.workers = workers
        self.in_flight = 0
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"adapter-{name}")

    def submit(self, label, func, *args, **kwargs):
        with self._lock:
            if self.in_flight >= self.workers:
                raise AdapterError(f"{label} rejected: {self.in_flight} calls still running in the "
                                   f"{self.name} pool", adapter=label)
            self.in_flight += 1

        def _run():
            try:
                return func(*args, **kwargs)
            finally:
                with self._lock:
                    self.in_flight -= 1

        return self._executor.submit(_run)


_pools = {}
_pools_lock = threading.Lock()


def get_pool(name):
    with _pools_lock:
        pool = _pools.get(name)
        if pool is None:
            pool = _pools[name] = _AdapterPool(name)
        return pool


def call_with_timeout(func, *args, timeout=10.0, name=None, pool="default", **kwargs):
    """Run func(*args, **kwargs) on the named pool, raising AdapterTimeout after `timeout` seconds.

    Any exception raised by the call is re-raised as AdapterError so callers
    only have to handle one family of failures. A pool whose workers are all
    stuck on earlier calls rejects new ones immediately.
    """
    label = name or getattr(func, "__qualname__", repr(func))
    future = get_pool(pool).submit(label, func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        raise AdapterTimeout(f"{label} timed out after {timeout:g}s", adapter=label)
    except AdapterError:
        raise
    except Exception as e:
        raise AdapterError(f"{label} failed: {e}", adapter=label, cause=e) from e
