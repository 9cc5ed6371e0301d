"""Background runners for the independently ticking monitoring loops."""
import logging
import threading
import time
import schedule

logger = logging.getLogger("opsmonitor.scheduler")

FAILURE_WARN_THRESHOLD = 5


class LoopRunner:
    """Run `job` every `interval_seconds` on a dedicated daemon thread.

    Each runner owns its own `schedule.Scheduler`, so loops never share a
    job queue. The job runs inside `run_pending`, which means a tick that
    overruns its interval delays the next one instead of overlapping it.
    """

    def __init__(self, name, interval_seconds, job, stop_event=None,
                 run_immediately=True, poll_seconds=0.5):
        if interval_seconds <= 0:
            raise ValueError(f"{name}: interval must be positive")
        self.name = name
        self.interval = interval_seconds
        self.job = job
        self.stop_event = stop_event or threading.Event()
        self.run_immediately = run_immediately
        self.poll_seconds = min(poll_seconds, interval_seconds)
        self._scheduler = schedule.Scheduler()
        self._thread = None
        self._running = False
        self.tick_count = 0
        self.consecutive_failures = 0
        self.last_run = None
        self.last_error = None

    @property
    def is_running(self):
        return self._running

    def start(self):
        if self._running:
            return
        self._running = True
        self._scheduler.every(self.interval).seconds.do(self._tick)
        self._thread = threading.Thread(target=self._run_loop, name=f"loop-{self.name}", daemon=True)
        self._thread.start()
        logger.info(f"{self.name} loop started (every {self.interval}s)")

    def stop(self, timeout=5):
        self._running = False
        self._scheduler.clear()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info(f"{self.name} loop stopped")

    def _run_loop(self):
        if self.run_immediately and not self.stop_event.is_set():
            self._tick()
        while self._running and not self.stop_event.is_set():
            self._scheduler.run_pending()
            self.stop_event.wait(self.poll_seconds)
        self._running = False

    def _tick(self):
        started = time.monotonic()
        try:
            self.job()
            self.consecutive_failures = 0
            self.last_error = None
        except Exception as e:
            self.consecutive_failures += 1
            self.last_error = str(e)
            logger.exception(f"{self.name} tick failed ({self.consecutive_failures} consecutive)")
            if self.consecutive_failures >= FAILURE_WARN_THRESHOLD:
                logger.critical(f"{self.name}: {FAILURE_WARN_THRESHOLD}+ consecutive tick failures!")
        finally:
            self.tick_count += 1
            self.last_run = time.time()
            elapsed = time.monotonic() - started
            if elapsed > self.interval:
                logger.warning(f"{self.name} tick took {elapsed:.1f}s, longer than its {self.interval}s interval")

    def status(self):
        return {
            "name": self.name,
            "interval_seconds": self.interval,
            "running": self._running,
            "ticks": self.tick_count,
            "last_run": self.last_run,
            "last_error": self.last_error,
            "consecutive_failures": self.consecutive_failures,
        }
