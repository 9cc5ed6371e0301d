"""Autoscaling engine: hysteresis thresholds, fleet bounds, per-rule cooldown."""
import logging
import threading
from collections import deque
from datetime import datetime, timezone

from models.cooldown import CooldownTracker
from models.enums import ScaleDirection, RuleState
from models.errors import AdapterError, ConfigurationError
from models.scaling import ScalingEvent
from utils.timeout import SCALER_POOL, call_with_timeout

logger = logging.getLogger("opsmonitor.scaling.engine")


def _bounds(rules):
    """Instance range every enabled rule accepts, or None without enabled rules."""
    enabled = [r for r in rules if r.enabled]
    if not enabled:
        return None
    return max(r.min_instances for r in enabled), min(r.max_instances for r in enabled)


class AutoscalingEngine:
    """Issues one-instance scale directives through a ScalingAdapter.

    Per rule: Idle -> ScalingUp|ScalingDown -> Cooldown -> Idle. A rule in
    cooldown is skipped in both directions, and the cooldown starts whether
    or not the adapter call succeeded.

    All rules act on the same fleet, so a directive must keep the instance
    count inside every enabled rule's [min, max], and at most one directive
    is issued per tick. When rules disagree, scaling up wins.
    """

    STEP = 1

    def __init__(self, collector, scaler, interval_seconds=60, call_timeout=30.0,
                 clock=None, history_size=200):
        self.collector = collector
        self.scaler = scaler
        self.interval = interval_seconds
        self.call_timeout = call_timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.cooldowns = CooldownTracker()
        self._rules = []
        self._rules_lock = threading.Lock()
        self.events = deque(maxlen=history_size)
        self.last_errors = {}

    @property
    def rules(self):
        with self._rules_lock:
            return list(self._rules)

    def fleet_bounds(self):
        return _bounds(self.rules)

    def add_rule(self, rule):
        """Validate and register a rule; raises ConfigurationError if invalid."""
        rule.validate()
        with self._rules_lock:
            if any(r.id == rule.id for r in self._rules):
                raise ConfigurationError(f"Duplicate scaling rule id: {rule.id}")
            bounds = _bounds(self._rules + [rule])
            if bounds is not None and bounds[0] > bounds[1]:
                raise ConfigurationError(
                    f"Scaling rule {rule.id}: instances {rule.min_instances}-{rule.max_instances} "
                    f"leave no range shared with the other enabled rules"
                )
            self._rules.append(rule)
        logger.info(f"Added scaling rule: {rule.name} ({rule.metric} "
                    f"{rule.scale_down_threshold:g}/{rule.scale_up_threshold:g}, "
                    f"{rule.min_instances}-{rule.max_instances})")

    def remove_rule(self, rule_id):
        with self._rules_lock:
            before = len(self._rules)
            self._rules = [r for r in self._rules if r.id != rule_id]
            return len(self._rules) < before

    def state(self, rule_id, now=None):
        rule = next((r for r in self.rules if r.id == rule_id), None)
        if rule is None:
            return None
        now = now or self._clock()
        if self.cooldowns.in_cooldown(rule.id, rule.cooldown_minutes, now):
            return RuleState.COOLDOWN
        return RuleState.IDLE

    def instance_count(self):
        return int(call_with_timeout(self.scaler.get_instance_count, timeout=self.call_timeout,
                                     name="get_instance_count", pool=SCALER_POOL))

    def _record_error(self, rule_id, message, now):
        self.last_errors[rule_id] = {"error": message, "at": now}

    def _wanted(self, rule, snapshot, now):
        """Direction the rule's metric asks for, ignoring instance counts."""
        value = snapshot.get(rule.metric)
        if value is None:
            return None
        if self.cooldowns.in_cooldown(rule.id, rule.cooldown_minutes, now):
            logger.debug(f"{rule.id} in cooldown, no scaling action")
            return None
        if value > rule.scale_up_threshold:
            return ScaleDirection.UP, value
        if value < rule.scale_down_threshold:
            return ScaleDirection.DOWN, value
        return None

    def evaluate(self, snapshot=None, now=None):
        """Evaluate every enabled rule once; returns the ScalingEvents issued (at most one)."""
        snapshot = snapshot or self.collector.latest_or_none()
        if snapshot is None:
            logger.debug("No snapshot yet, skipping scaling evaluation")
            return []
        now = now or self._clock()

        rules = self.rules
        candidates = []
        for rule in rules:
            if not rule.enabled:
                continue
            try:
                wanted = self._wanted(rule, snapshot, now)
            except Exception as e:
                logger.exception(f"Scaling evaluation of {rule.id} failed")
                self._record_error(rule.id, str(e), now)
                continue
            if wanted is not None:
                candidates.append((rule, wanted[0], wanted[1]))
        if not candidates:
            return []

        try:
            current = self.instance_count()
        except AdapterError as e:
            logger.warning(f"Cannot read instance count: {e}")
            for rule, _, _ in candidates:
                self._record_error(rule.id, str(e), now)
            return []

        low, high = _bounds(rules)
        ups = [c for c in candidates if c[1] is ScaleDirection.UP]
        downs = [c for c in candidates if c[1] is ScaleDirection.DOWN]
        if ups:
            chosen, target = ups[0], current + self.STEP
        else:
            chosen, target = downs[0], current - self.STEP

        rule, direction, value = chosen
        if not low <= target <= high:
            logger.debug(f"{rule.id}: {current} -> {target} would leave the fleet range [{low}, {high}]")
            return []
        if not self.cooldowns.try_acquire(rule.id, rule.cooldown_minutes, now):
            return []
        return [self._issue(rule, direction, value, current, target, now)]

    def _issue(self, rule, direction, value, current, target, now):
        verb = "UP" if direction is ScaleDirection.UP else "DOWN"
        logger.info(f"Scaling {verb}: {rule.name} - {rule.metric} = {value:.2f} ({current} -> {target})")
        func = self.scaler.scale_up if direction is ScaleDirection.UP else self.scaler.scale_down

        error = None
        try:
            ok = call_with_timeout(func, rule, timeout=self.call_timeout,
                                   name=f"scale_{direction.value}", pool=SCALER_POOL)
            if ok is False:
                error = "scaling adapter reported failure"
        except AdapterError as e:
            error = str(e)

        if error:
            logger.warning(f"Scaling {verb} for {rule.id} failed: {error}; cooldown still applies")
            self._record_error(rule.id, error, now)

        event = ScalingEvent(
            rule_id=rule.id,
            direction=direction,
            metric_value=value,
            instances_before=current,
            target_instances=target,
            success=error is None,
            error=error,
            timestamp=now,
        )
        self.events.append(event)
        return event

    def recent_errors(self, window, now=None):
        now = now or self._clock()
        return [f"scaling[{rid}]: {e['error']}" for rid, e in self.last_errors.items()
                if now - e["at"] <= window]
