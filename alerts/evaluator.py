"""Alert evaluation: threshold checks, cooldown suppression, dispatch, escalation."""
import logging
import threading
from collections import deque
from datetime import datetime, timezone

from alerts.dispatch import deliver
from alerts.escalation import EscalationScheduler
from models.alerts import AlertRecord
from models.cooldown import CooldownTracker
from models.enums import Operator
from models.errors import ConfigurationError

logger = logging.getLogger("opsmonitor.alerts.evaluator")

OPERATOR_MAP = {
    Operator.GREATER_THAN: lambda v, t: v > t,
    Operator.LESS_THAN: lambda v, t: v < t,
    Operator.EQUALS: lambda v, t: v == t,
}


class AlertEvaluator:
    """Evaluates alert rules against the collector's latest snapshot.

    Per rule: Idle -> Firing (condition true, not in cooldown) -> Cooldown
    for cooldown_minutes -> Idle. Escalation runs on its own timeline from
    the Firing transition, via the EscalationScheduler.
    """

    def __init__(self, collector, channel, interval_seconds=30, send_timeout=10.0,
                 clock=None, escalations=None, history_size=500):
        self.collector = collector
        self.channel = channel
        self.interval = interval_seconds
        self.send_timeout = send_timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.escalations = escalations or EscalationScheduler(channel, send_timeout, clock=self._clock)
        self.cooldowns = CooldownTracker()
        self._rules = []
        self._rules_lock = threading.Lock()
        self.history = deque(maxlen=history_size)
        self._stats_lock = threading.Lock()
        self.delivery_failures = 0
        self.last_failure = None
        self.last_failure_at = None

    # ── Rule management ─────────────────────────────────

    @property
    def rules(self):
        with self._rules_lock:
            return list(self._rules)

    def add_rule(self, rule):
        rule.validate()
        with self._rules_lock:
            if any(r.key == rule.key for r in self._rules):
                raise ConfigurationError(f"Duplicate alert rule for {rule.key[0]} at {rule.key[1]:g}")
            self._rules.append(rule)
        logger.info(f"Added alert: {rule.metric} {rule.operator.value} {rule.threshold:g}")

    def remove_rule(self, key):
        with self._rules_lock:
            before = len(self._rules)
            self._rules = [r for r in self._rules if r.key != key]
            return len(self._rules) < before

    def get_rule(self, key):
        for r in self.rules:
            if r.key == key:
                return r
        return None

    # ── Evaluation ──────────────────────────────────────

    def _evaluate_condition(self, value, operator, threshold):
        if value is None:
            return False
        func = OPERATOR_MAP.get(operator)
        if func is None:
            return False
        return func(value, threshold)

    def in_cooldown(self, rule, now=None):
        return self.cooldowns.in_cooldown(rule.key, rule.cooldown_minutes, now or self._clock())

    def evaluate(self, snapshot=None, now=None):
        """Evaluate every rule once; returns the AlertRecords fired this tick."""
        snapshot = snapshot or self.collector.latest_or_none()
        if snapshot is None:
            logger.debug("No snapshot yet, skipping alert evaluation")
            return []
        now = now or self._clock()

        fired = []
        for rule in self.rules:
            try:
                value = snapshot.get(rule.metric)
                if value is None:
                    continue
                if not self._evaluate_condition(value, rule.operator, rule.threshold):
                    continue
                if not self.cooldowns.try_acquire(rule.key, rule.cooldown_minutes, now):
                    logger.debug(f"{rule.label} suppressed by cooldown")
                    continue
                fired.append(self._fire(rule, value, now))
            except Exception:
                logger.exception(f"Evaluation of {rule.label} failed")
        return fired

    def trigger(self, key, value=None, now=None, force=False):
        """Manually fire a rule; honours the same cooldown map unless `force`.

        Returns the AlertRecord, or None if the rule is unknown or cooling down.
        """
        rule = self.get_rule(key)
        if rule is None:
            return None
        now = now or self._clock()
        if value is None:
            snapshot = self.collector.latest_or_none()
            value = snapshot.get(rule.metric) if snapshot else 0.0
        if force:
            self.cooldowns.mark(rule.key, now)
        elif not self.cooldowns.try_acquire(rule.key, rule.cooldown_minutes, now):
            return None
        return self._fire(rule, value, now)

    def _fire(self, rule, value, now):
        record = AlertRecord(
            rule_key=rule.key,
            rule_name=rule.label,
            metric=rule.key[0],
            metric_value=value,
            threshold=rule.threshold,
            operator=rule.operator.value,
            severity=rule.severity.value,
            recipients=tuple(rule.recipients),
            triggered_at=now,
        )
        logger.warning(f"ALERT: {rule.metric} is {value:.2f}, threshold {rule.threshold:g} ({rule.severity.value})")
        _, failed = deliver(self.channel, rule.recipients, record, timeout=self.send_timeout)
        if failed:
            with self._stats_lock:
                self.delivery_failures += len(failed)
                self.last_failure = f"delivery failed for {', '.join(failed)}"
                self.last_failure_at = now
        self.history.append(record)

        if rule.escalation is not None:
            self.escalations.schedule(rule, value, now)
        return record

    # ── Reporting ───────────────────────────────────────

    def active_rules(self, now=None):
        """Rules currently able to fire (not suppressed by cooldown)."""
        now = now or self._clock()
        return [r for r in self.rules if not self.in_cooldown(r, now)]

    def suppressed_rules(self, now=None):
        """(rule, seconds_remaining) for rules inside their cooldown window."""
        now = now or self._clock()
        out = []
        for r in self.rules:
            remaining = self.cooldowns.remaining(r.key, r.cooldown_minutes, now)
            if remaining > 0:
                out.append((r, remaining))
        return out

    def test_rules(self, snapshot):
        """Evaluate all rules ignoring cooldowns, without dispatching."""
        results = []
        for rule in self.rules:
            value = snapshot.get(rule.metric)
            results.append({
                "metric": rule.metric,
                "operator": rule.operator.value,
                "threshold": rule.threshold,
                "current_value": value,
                "would_fire": self._evaluate_condition(value, rule.operator, rule.threshold),
                "severity": rule.severity.value,
            })
        return results

    def recent_errors(self, window, now=None):
        now = now or self._clock()
        errors = []
        with self._stats_lock:
            failure, failed_at = self.last_failure, self.last_failure_at
        if failed_at and now - failed_at <= window:
            errors.append(f"alerts: {failure}")
        esc_failure, esc_at = self.escalations.failure_info()
        if esc_at and now - esc_at <= window:
            errors.append(f"escalation: {esc_failure}")
        return errors
