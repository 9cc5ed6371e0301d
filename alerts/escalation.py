"""Delayed escalation notices anchored to the time an alert first fired."""
import heapq
import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from alerts.dispatch import deliver
from models.alerts import AlertRecord

logger = logging.getLogger("opsmonitor.alerts.escalation")


@dataclass
class PendingEscalation:
    due: datetime
    rule: object
    value: float
    fired_at: datetime
    level_index: int


class EscalationScheduler:
    """In-memory queue of escalation notices, drained by `run_due`.

    Each level is due at fired_at + level.delay_minutes; levels are not
    chained off each other. Entries from an earlier firing stay queued when
    the rule fires again. Nothing here survives a restart.
    """

    def __init__(self, channel, send_timeout=10.0, clock=None, history_size=500):
        self.channel = channel
        self.send_timeout = send_timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._heap = []
        self._seq = itertools.count()
        self._lock = threading.Lock()
        self.history = deque(maxlen=history_size)
        self.delivery_failures = 0
        self.last_failure = None
        self.last_failure_at = None

    def schedule(self, rule, value, fired_at):
        """Queue the rule's escalation levels, at most max_retries of them."""
        policy = rule.escalation
        if policy is None or not policy.levels:
            return 0
        levels = policy.levels[:max(policy.max_retries, 0)]
        with self._lock:
            for idx, level in enumerate(levels):
                due = fired_at + timedelta(minutes=level.delay_minutes)
                entry = PendingEscalation(due=due, rule=rule, value=value,
                                          fired_at=fired_at, level_index=idx)
                heapq.heappush(self._heap, (due, next(self._seq), entry))
        logger.debug(f"Scheduled {len(levels)} escalation level(s) for {rule.label}")
        return len(levels)

    def _pop_due(self, now):
        due = []
        with self._lock:
            while self._heap and self._heap[0][0] <= now:
                due.append(heapq.heappop(self._heap)[2])
        return due

    def run_due(self, now=None):
        """Deliver every escalation whose time has come; returns the records sent."""
        now = now or self._clock()
        sent = []
        for entry in self._pop_due(now):
            level = entry.rule.escalation.levels[entry.level_index]
            record = AlertRecord(
                rule_key=entry.rule.key,
                rule_name=entry.rule.label,
                metric=entry.rule.key[0],
                metric_value=entry.value,
                threshold=entry.rule.threshold,
                operator=entry.rule.operator.value,
                severity=entry.rule.severity.value,
                recipients=tuple(level.recipients),
                triggered_at=now,
                escalation_level=entry.level_index + 1,
                action=level.action.value,
            )
            logger.info(f"Escalating {entry.rule.label} (level {entry.level_index + 1}, "
                        f"fired {entry.fired_at.isoformat()})")
            _, failed = deliver(self.channel, level.recipients, record, timeout=self.send_timeout)
            if failed:
                with self._lock:
                    self.delivery_failures += len(failed)
                    self.last_failure = f"delivery failed for {', '.join(failed)}"
                    self.last_failure_at = now
            self.history.append(record)
            sent.append(record)
        return sent

    def failure_info(self):
        """(last failure message, when) read together."""
        with self._lock:
            return self.last_failure, self.last_failure_at

    def pending(self):
        with self._lock:
            return len(self._heap)

    def next_due(self):
        with self._lock:
            return self._heap[0][0] if self._heap else None

    def clear(self):
        """Drop queued escalations, e.g. on shutdown; returns how many were dropped."""
        with self._lock:
            dropped = len(self._heap)
            self._heap.clear()
        if dropped:
            logger.warning(f"Dropped {dropped} pending escalation(s)")
        return dropped
