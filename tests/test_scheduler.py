"""Tests for the background loop runners."""
import threading
import time
import pytest
from unittest.mock import MagicMock

from monitor.scheduler import LoopRunner


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


class TestLoopRunner:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            LoopRunner("bad", 0, lambda: None)

    def test_runs_immediately_and_repeats(self):
        calls = []
        runner = LoopRunner("fast", 0.1, lambda: calls.append(time.monotonic()), poll_seconds=0.02)
        runner.start()
        try:
            assert wait_for(lambda: len(calls) >= 3)
        finally:
            runner.stop(timeout=2)
        assert not runner.is_running
        assert runner.status()["ticks"] >= 3

    def test_deferred_first_tick(self):
        job = MagicMock()
        runner = LoopRunner("later", 60, job, run_immediately=False)
        runner.start()
        try:
            time.sleep(0.2)
            job.assert_not_called()
        finally:
            runner.stop(timeout=2)

    def test_failing_tick_does_not_kill_loop(self):
        job = MagicMock(side_effect=[RuntimeError("boom"), RuntimeError("boom"), None, None, None])
        runner = LoopRunner("flaky", 0.05, job, poll_seconds=0.01)
        runner.start()
        try:
            assert wait_for(lambda: job.call_count >= 3)
        finally:
            runner.stop(timeout=2)
        assert runner.consecutive_failures == 0
        assert runner.last_error is None

    def test_failure_is_recorded(self):
        runner = LoopRunner("broken", 60, MagicMock(side_effect=RuntimeError("boom")))
        runner._tick()
        runner._tick()
        status = runner.status()
        assert status["consecutive_failures"] == 2
        assert status["last_error"] == "boom"
        assert status["ticks"] == 2

    def test_shared_stop_event_stops_every_loop(self):
        stop = threading.Event()
        runners = [LoopRunner(f"loop{i}", 0.05, lambda: None, stop_event=stop, poll_seconds=0.01)
                   for i in range(3)]
        for r in runners:
            r.start()
        stop.set()
        assert wait_for(lambda: not any(r.is_running for r in runners))
        for r in runners:
            r.stop(timeout=1)

    def test_ticks_never_overlap(self):
        active = []
        overlaps = []
        lock = threading.Lock()

        def slow_job():
            with lock:
                if active:
                    overlaps.append(True)
                active.append(1)
            time.sleep(0.08)
            with lock:
                active.pop()

        runner = LoopRunner("slow", 0.02, slow_job, poll_seconds=0.01)
        runner.start()
        time.sleep(0.4)
        runner.stop(timeout=2)
        assert overlaps == []
        assert runner.tick_count >= 2
