"""Alert and scaling rule loading from YAML."""
import logging
import re
import yaml
from pathlib import Path

from models.alerts import AlertRule, EscalationLevel, EscalationPolicy
from models.enums import Operator, Severity, EscalationAction
from models.errors import ConfigurationError
from models.scaling import ScalingRule

logger = logging.getLogger("opsmonitor.alerts.rules")

DEFAULT_RULES_PATH = Path(__file__).resolve().parent.parent / "config" / "rules.yaml"

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")

# Keys whose names changed beyond a camel -> snake conversion
_KEY_RENAMES = {
    "cooldown": "cooldown_minutes",
    "metric_name": "metric",
}


def _normalize_keys(raw):
    out = {}
    for key, val in raw.items():
        snake = _CAMEL.sub("_", str(key)).lower()
        out[_KEY_RENAMES.get(snake, snake)] = val
    return out


def _enum(enum_cls, value, what, where):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise ConfigurationError(f"{where}: invalid {what} {value!r} (expected one of: {choices})")


def parse_alert_rule(raw, where="alert"):
    r = _normalize_keys(raw)
    try:
        escalation = None
        if r.get("escalation"):
            esc = _normalize_keys(r["escalation"])
            levels = []
            for lvl in esc.get("levels", []):
                lvl = _normalize_keys(lvl)
                levels.append(EscalationLevel(
                    delay_minutes=float(lvl["delay_minutes"]),
                    recipients=list(lvl.get("recipients", [])),
                    action=_enum(EscalationAction, lvl.get("action", "email"), "escalation action", where),
                ))
            escalation = EscalationPolicy(levels=levels, max_retries=int(esc.get("max_retries", 3)))

        rule = AlertRule(
            metric=r["metric"],
            threshold=float(r["threshold"]),
            operator=_enum(Operator, r.get("operator", "greater_than"), "operator", where),
            severity=_enum(Severity, r.get("severity", "medium"), "severity", where),
            cooldown_minutes=float(r.get("cooldown_minutes", 15)),
            recipients=list(r.get("recipients", [])),
            escalation=escalation,
            name=r.get("name", ""),
        )
    except KeyError as e:
        raise ConfigurationError(f"{where}: missing required field {e.args[0]!r}")
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{where}: {e}")
    rule.validate()
    return rule


def parse_scaling_rule(raw, where="scaling rule"):
    r = _normalize_keys(raw)
    try:
        rule = ScalingRule(
            id=str(r["id"]),
            name=r.get("name", r["id"]),
            metric=r["metric"],
            scale_up_threshold=float(r["scale_up_threshold"]),
            scale_down_threshold=float(r["scale_down_threshold"]),
            min_instances=int(r.get("min_instances", 1)),
            max_instances=int(r.get("max_instances", 10)),
            cooldown_minutes=float(r.get("cooldown_minutes", 5)),
            enabled=bool(r.get("enabled", True)),
        )
    except KeyError as e:
        raise ConfigurationError(f"{where}: missing required field {e.args[0]!r}")
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{where}: {e}")
    rule.validate()
    return rule


class RulesManager:
    """Startup rule definitions. `strict=False` logs and skips bad entries."""

    def __init__(self, rules_path=None, strict=True):
        self.rules_path = Path(rules_path) if rules_path else DEFAULT_RULES_PATH
        self.strict = strict
        self.alert_rules = []
        self.scaling_rules = []
        self.errors = []
        self.load()

    def load(self):
        self.alert_rules, self.scaling_rules, self.errors = [], [], []
        if not self.rules_path.exists():
            logger.warning(f"Rules file not found: {self.rules_path}")
            return
        with open(self.rules_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {self.rules_path}: {e}")

        for i, raw in enumerate(data.get("alerts", []) or []):
            self._add(parse_alert_rule, raw, f"alerts[{i}]", self.alert_rules)
        for i, raw in enumerate(data.get("scaling", []) or []):
            where = f"scaling[{i}] ({raw.get('id', '?')})" if isinstance(raw, dict) else f"scaling[{i}]"
            self._add(parse_scaling_rule, raw, where, self.scaling_rules)
        logger.info(f"Loaded {len(self.alert_rules)} alert rules, {len(self.scaling_rules)} scaling rules")

    def _add(self, parser, raw, where, target):
        try:
            if not isinstance(raw, dict):
                raise ConfigurationError(f"{where}: expected a mapping")
            target.append(parser(raw, where))
        except ConfigurationError as e:
            if self.strict:
                raise
            logger.warning(f"Skipping invalid rule: {e}")
            self.errors.append(str(e))

    def get_alert_rules(self):
        return list(self.alert_rules)

    def get_scaling_rules(self):
        return list(self.scaling_rules)
