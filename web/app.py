"""
Read-only health query surface for status pages and orchestrator probes.

Endpoints:
  GET /healthz                  liveness, always "ok"
  GET /readyz                   "ready" once a snapshot exists, 503 before
  GET /api/health               SystemHealth as JSON
  GET /api/metrics/latest       latest snapshot
  GET /api/metrics/history      snapshots from the last ?minutes=N (default 60)
  GET /api/alerts               alert rules, cooldown state and recent dispatches
  GET /api/scaling              scaling rules, state and recent directives

Every request is timed into the system's RequestStats, which the host
metric source turns into response time, throughput and error rate.

Started via: python main.py run --web [--port 8080]
"""
import logging
import time

from flask import Flask, g, jsonify, request

logger = logging.getLogger("opsmonitor.web.app")

HEALTH_CACHE_TTL = 2  # seconds


def create_app(system) -> Flask:
    """Factory function. Receives the process's MonitoringSystem."""
    app = Flask(__name__)

    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def _record_request(response):
        started = g.pop("request_started", None)
        if started is not None:
            system.request_stats.record_request((time.perf_counter() - started) * 1000,
                                                error=response.status_code >= 500)
        return response

    @app.get("/healthz")
    def healthz():
        return "ok", 200

    @app.get("/readyz")
    def readyz():
        if system.collector.latest_or_none() is None:
            return "not ready", 503
        return "ready", 200

    @app.get("/api/health")
    def api_health():
        cached = system.cache.get("api:health")
        if cached is None:
            cached = system.get_system_health().to_dict()
            system.cache.set("api:health", cached, ttl=HEALTH_CACHE_TTL)
        return jsonify(cached)

    @app.get("/api/metrics/latest")
    def api_metrics_latest():
        snapshot = system.collector.latest_or_none()
        if snapshot is None:
            return jsonify({"error": "no metrics collected yet"}), 503
        return jsonify(snapshot.to_dict())

    @app.get("/api/metrics/history")
    def api_metrics_history():
        try:
            minutes = int(request.args.get("minutes", 60))
        except ValueError:
            minutes = 0
        if minutes <= 0:
            return jsonify({"error": "minutes must be a positive integer"}), 400
        snapshots = system.collector.history(minutes * 60)
        return jsonify({"minutes": minutes, "count": len(snapshots),
                        "snapshots": [s.to_dict() for s in snapshots]})

    @app.get("/api/alerts")
    def api_alerts():
        evaluator = system.evaluator
        suppressed = {rule.key: remaining for rule, remaining in evaluator.suppressed_rules()}
        rules = []
        for rule in evaluator.rules:
            rules.append({
                "name": rule.label,
                "metric": rule.key[0],
                "operator": rule.operator.value,
                "threshold": rule.threshold,
                "severity": rule.severity.value,
                "cooldown_minutes": rule.cooldown_minutes,
                "recipients": list(rule.recipients),
                "state": "cooldown" if rule.key in suppressed else "idle",
                "cooldown_remaining_seconds": round(suppressed.get(rule.key, 0.0), 1),
            })
        recent = list(evaluator.history)[-50:] + list(system.escalations.history)[-50:]
        recent.sort(key=lambda r: r.triggered_at, reverse=True)
        return jsonify({
            "rules": rules,
            "recent": [r.to_dict() for r in recent],
            "pending_escalations": system.escalations.pending(),
        })

    @app.get("/api/scaling")
    def api_scaling():
        engine = system.autoscaler
        rules = []
        for rule in engine.rules:
            state = engine.state(rule.id)
            rules.append({
                "id": rule.id,
                "name": rule.name,
                "metric": rule.metric,
                "scale_up_threshold": rule.scale_up_threshold,
                "scale_down_threshold": rule.scale_down_threshold,
                "min_instances": rule.min_instances,
                "max_instances": rule.max_instances,
                "cooldown_minutes": rule.cooldown_minutes,
                "enabled": rule.enabled,
                "state": state.value if state else None,
            })
        return jsonify({
            "rules": rules,
            "events": [e.to_dict() for e in list(engine.events)[-50:]],
        })

    return app
