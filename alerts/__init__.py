"""Alert system module."""
from alerts.evaluator import AlertEvaluator
from alerts.escalation import EscalationScheduler
from alerts.rules_manager import RulesManager
from alerts.channels import LogChannel, ConsoleChannel, FileChannel, WebhookChannel, EmailChannel, ChannelRouter
