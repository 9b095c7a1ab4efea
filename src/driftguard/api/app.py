"""Flask REST API for DriftGuard.

The API evaluates posted objects in audit mode only; it never mutates.

Endpoints:
  GET  /api/v1/status          — Service health check
  GET  /api/v1/policy          — Effective policy
  POST /api/v1/evaluate/tags   — Evaluate posted resources
  POST /api/v1/evaluate/nsg    — Evaluate posted NSGs
  GET  /api/v1/report/<format> — Last evaluation as json or text
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify, request

from driftguard import __version__
from driftguard.check.checker import ComplianceChecker
from driftguard.config import ConfigurationError, RunConfig
from driftguard.models import (
    CheckType,
    ComplianceReport,
    NetworkSecurityGroup,
    PolicySet,
    RunMode,
    SecurityRule,
    TargetObject,
)
from driftguard.providers.memory import InMemoryProvider
from driftguard.report.generator import ReportGenerator

logger = logging.getLogger(__name__)


def parse_resource(data: dict[str, Any]) -> TargetObject:
    """Build a TargetObject from a JSON body entry."""
    if not isinstance(data, dict) or "name" not in data:
        raise ValueError("Each resource needs a 'name'")
    tags = data.get("tags") or {}
    if not isinstance(tags, dict):
        raise ValueError(f"Tags for {data['name']} must be an object")
    return TargetObject(
        name=str(data["name"]),
        scope=str(data.get("resource_group") or data.get("scope") or ""),
        resource_id=str(data.get("id", "")),
        resource_type=str(data.get("type", "")),
        tags={str(k): str(v) for k, v in tags.items()},
    )


def parse_rule(data: dict[str, Any]) -> SecurityRule:
    if not isinstance(data, dict) or "name" not in data or "priority" not in data:
        raise ValueError("Each rule needs a 'name' and a 'priority'")
    ports = data.get("destination_ports")
    if ports is None:
        port_range = data.get("destination_port_range", "*")
        ports = [p for p in str(port_range).split(",") if p.strip()]
    return SecurityRule(
        name=str(data["name"]),
        priority=int(data["priority"]),
        direction=str(data.get("direction", "Inbound")),
        access=str(data.get("access", "Allow")),
        protocol=str(data.get("protocol", "*")),
        source_address_prefix=str(data.get("source_address_prefix", "*")),
        destination_address_prefix=str(data.get("destination_address_prefix", "*")),
        destination_ports=[str(p).strip() for p in ports],
    )


def parse_nsg(data: dict[str, Any]) -> NetworkSecurityGroup:
    if not isinstance(data, dict) or "name" not in data:
        raise ValueError("Each NSG needs a 'name'")
    return NetworkSecurityGroup(
        name=str(data["name"]),
        scope=str(data.get("resource_group") or data.get("scope") or ""),
        resource_id=str(data.get("id", "")),
        rules=[parse_rule(r) for r in data.get("rules") or []],
    )


def create_app(checker: ComplianceChecker | None = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config["JSON_SORT_KEYS"] = False

    _checker = checker or ComplianceChecker()
    _reporter = ReportGenerator()
    _last: dict[str, ComplianceReport] = {}

    def _evaluate(check_type: CheckType, key: str, parser):
        data = request.get_json(silent=True)
        if (not isinstance(data, dict) or key not in data
                or not isinstance(data[key], list)):
            return jsonify({"error": f"Missing '{key}' list in request body"}), 400

        try:
            run = RunConfig.from_values(data.get("environment", "all"),
                                        RunMode.AUDIT.value)
            objects = [parser(item) for item in data[key]]
        except (ConfigurationError, ValueError, TypeError) as e:
            return jsonify({"error": str(e)}), 400

        if check_type == CheckType.NSG:
            provider = InMemoryProvider(network_security_groups=objects)
        else:
            provider = InMemoryProvider(resources=objects)

        report = _checker.run(check_type, provider, run)
        _last["report"] = report
        return jsonify(_reporter.to_dict(report))

    @app.route("/api/v1/status", methods=["GET"])
    def status():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "version": __version__,
            "policy_source": _checker.policy.source,
        })

    @app.route("/api/v1/policy", methods=["GET"])
    def policy():
        """Return the effective policy."""
        return jsonify(policy_to_dict(_checker.policy))

    @app.route("/api/v1/evaluate/tags", methods=["POST"])
    def evaluate_tags():
        """Evaluate posted resources against the tag policy."""
        return _evaluate(CheckType.TAGS, "resources", parse_resource)

    @app.route("/api/v1/evaluate/nsg", methods=["POST"])
    def evaluate_nsg():
        """Evaluate posted NSGs against the port and source policy."""
        return _evaluate(CheckType.NSG, "network_security_groups", parse_nsg)

    @app.route("/api/v1/report/<fmt>", methods=["GET"])
    def report(fmt: str):
        """Render the last evaluation."""
        if fmt not in ("json", "text"):
            return jsonify({"error": f"Unsupported format: {fmt}. Use json or text."}), 400
        last = _last.get("report")
        if last is None:
            return jsonify({"error": "No evaluation has been run yet"}), 404

        if fmt == "json":
            return _reporter.generate_json(last), 200, {"Content-Type": "application/json"}
        layout = request.args.get("layout", "flat")
        if layout not in ("flat", "grouped"):
            return jsonify({"error": f"Unknown layout: {layout}"}), 400
        return _reporter.generate_text(last, layout=layout), 200, {"Content-Type": "text/plain"}

    return app


def policy_to_dict(policy: PolicySet) -> dict[str, Any]:
    return {
        "source": policy.source,
        "app_pattern": policy.app_pattern,
        "environments": {
            p.environment.value: {
                "required_tags": p.required_tag_map,
                "allowed_ports": sorted(p.allowed_ports),
                "safe_source": p.safe_source,
            }
            for p in policy.environments
        },
        "team_rules": [{"pattern": r.pattern, "team": r.team} for r in policy.team_rules],
    }
