#!/usr/bin/env python3
"""Ops Monitor - CLI Entry Point."""
import sys
import json
import signal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()

STATUS_STYLES = {
    "healthy": "bold green",
    "warning": "bold yellow",
    "degraded": "bold yellow",
    "critical": "bold white on red",
    "unknown": "dim",
}


def _init_system(config_path=None, verbose=False, rules_path=None):
    """Lazy initialization of config, logging and the monitoring system."""
    from config import load_config
    from utils.logger import setup_logging
    from monitor.factory import build_system

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file") or None)
    return config, build_system(config, rules_path=rules_path)


def _fail(message):
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="opsmonitor")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Ops Monitor - metrics sampling, alerting with escalation, and autoscaling."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _system(ctx, rules_path=None):
    from models.errors import ConfigurationError
    try:
        return _init_system(ctx.obj.get("config_path"), ctx.obj.get("verbose"), rules_path)
    except ConfigurationError as e:
        _fail(str(e))


# ──────────────────────────────────────────────────────
# RUN
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--rules", "rules_path", default=None, help="Rules YAML (default: from config)")
@click.option("--web/--no-web", default=False, help="Serve the health API alongside the loops")
@click.option("--port", default=None, type=int, help="Port for the health API")
@click.option("--host", default=None, type=str, help="Host for the health API")
@click.pass_context
def run(ctx, rules_path, web, port, host):
    """Start all monitoring loops and block until interrupted."""
    config, system = _system(ctx, rules_path)
    system.start()
    console.print(f"[bold]Ops Monitor {__version__}[/bold] running "
                  f"({len(system.evaluator.rules)} alert rules, {len(system.autoscaler.rules)} scaling rules)")

    try:
        if web:
            from web.app import create_app
            web_cfg = config.get("web", {})
            host = host or web_cfg.get("host", "127.0.0.1")
            port = port or web_cfg.get("port", 8080)
            console.print(f"  Health API: http://{host}:{port}/api/health")
            create_app(system).run(host=host, port=port, debug=False, use_reloader=False)
        else:
            def _shutdown(signum, frame):
                system.stop_event.set()
            signal.signal(signal.SIGINT, _shutdown)
            signal.signal(signal.SIGTERM, _shutdown)
            while not system.stop_event.wait(1):
                pass
    except KeyboardInterrupt:
        pass
    finally:
        system.stop()
        console.print("Stopped.")


# ──────────────────────────────────────────────────────
# HEALTH
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def health(ctx, as_json):
    """Collect one sample and print system health."""
    _, system = _system(ctx)
    system.collector.collect()
    report = system.get_system_health()

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2, default=str))
        return

    style = STATUS_STYLES.get(report.status.value, "")
    console.print(f"Status: [{style}]{report.status.value.upper()}[/]   Instances: {report.instances}")

    table = Table(title="Latest Metrics", show_header=True)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, val in report.snapshot.to_dict().items():
        if key != "timestamp":
            table.add_row(key, f"{val:,.2f}")
    console.print(table)

    for err in report.adapter_errors:
        console.print(f"[yellow]![/yellow] {err}")


# ──────────────────────────────────────────────────────
# RULES
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--rules", "rules_path", default=None, help="Rules YAML (default: from config)")
@click.pass_context
def rules(ctx, rules_path):
    """List configured alert and scaling rules."""
    _, system = _system(ctx, rules_path)

    table = Table(title="Alert Rules", show_header=True)
    table.add_column("Name")
    table.add_column("Condition")
    table.add_column("Severity")
    table.add_column("Cooldown")
    table.add_column("Recipients")
    table.add_column("Escalation")
    for r in system.evaluator.rules:
        esc = "-"
        if r.escalation:
            esc = ", ".join(f"+{lvl.delay_minutes:g}m {lvl.action.value}" for lvl in r.escalation.levels)
        table.add_row(r.label, f"{r.metric} {r.operator.value} {r.threshold:g}", r.severity.value,
                      f"{r.cooldown_minutes:g}m", ", ".join(r.recipients), esc)
    console.print(table)

    table = Table(title="Scaling Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Metric")
    table.add_column("Down / Up")
    table.add_column("Instances")
    table.add_column("Cooldown")
    table.add_column("Enabled")
    for r in system.autoscaler.rules:
        table.add_row(r.id, r.name, r.metric, f"{r.scale_down_threshold:g} / {r.scale_up_threshold:g}",
                      f"{r.min_instances}-{r.max_instances}", f"{r.cooldown_minutes:g}m",
                      "[green]✓[/green]" if r.enabled else "[red]✗[/red]")
    console.print(table)


@cli.command("test-rules")
@click.pass_context
def test_rules(ctx):
    """Collect one sample and show which alert rules would fire (ignores cooldowns)."""
    _, system = _system(ctx)
    snapshot = system.collector.collect()
    table = Table(title="Alert Rules Test", show_header=True)
    table.add_column("Metric")
    table.add_column("Condition")
    table.add_column("Current")
    table.add_column("Would Fire")
    for r in system.evaluator.test_rules(snapshot):
        fire_str = "[green]YES[/green]" if r["would_fire"] else "[dim]no[/dim]"
        val = f"{r['current_value']:.2f}" if r["current_value"] is not None else "N/A"
        table.add_row(r["metric"], f"{r['operator']} {r['threshold']:g}", val, fire_str)
    console.print(table)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def validate(path):
    """Check a rules file and report every invalid entry."""
    from alerts.rules_manager import RulesManager
    from models.errors import ConfigurationError

    try:
        manager = RulesManager(path, strict=False)
    except ConfigurationError as e:
        _fail(str(e))

    for err in manager.errors:
        console.print(f"[red]✗[/red] {err}")
    console.print(f"{len(manager.alert_rules)} alert rules, {len(manager.scaling_rules)} scaling rules valid")
    if manager.errors:
        sys.exit(1)


if __name__ == "__main__":
    cli()
