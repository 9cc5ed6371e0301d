"""Runs each maintenance task on its own loop so tasks never delay one another."""
import logging
import threading

from monitor.scheduler import LoopRunner

logger = logging.getLogger("opsmonitor.maintenance")


class MaintenanceScheduler:
    """Named tasks, each on its own LoopRunner.

    A task registered while the scheduler is running starts right away.
    """

    def __init__(self, stop_event=None):
        self.stop_event = stop_event or threading.Event()
        self._runners = {}
        self._lock = threading.Lock()
        self._running = False

    @property
    def is_running(self):
        return self._running

    def register(self, name, func, interval_seconds, run_immediately=False):
        with self._lock:
            if name in self._runners:
                raise ValueError(f"Maintenance task already registered: {name}")
            runner = LoopRunner(
                f"maintenance:{name}", interval_seconds, func,
                stop_event=self.stop_event, run_immediately=run_immediately,
            )
            self._runners[name] = runner
            if self._running:
                runner.start()
        logger.debug(f"Registered maintenance task {name} (every {interval_seconds}s)")

    def run_now(self, name):
        """Run one task synchronously, outside its schedule."""
        self._runners[name]._tick()

    def start(self):
        with self._lock:
            self._running = True
            runners = list(self._runners.values())
        for runner in runners:
            runner.start()

    def stop(self, timeout=5):
        with self._lock:
            self._running = False
            runners = list(self._runners.values())
        for runner in runners:
            runner.stop(timeout=timeout)

    def tasks(self):
        return [r.status() for r in self._runners.values()]

    def __contains__(self, name):
        return name in self._runners
