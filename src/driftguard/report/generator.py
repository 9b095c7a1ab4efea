"""Report generator: findings log, JSON and CSV export."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any

from driftguard.models import ComplianceReport, Environment, Finding

logger = logging.getLogger(__name__)

LAYOUTS = ("flat", "grouped")
GROUP_ORDER = (Environment.DEV, Environment.PROD, Environment.UNKNOWN)


def sorted_findings(findings: list[Finding]) -> list[Finding]:
    """Stable sort by object, so per-object check order is preserved."""
    return sorted(findings, key=lambda f: (f.object_name, f.object_id))


def format_finding(finding: Finding) -> str:
    line = (f"[{finding.status.value.upper()}] "
            f"{finding.scope}/{finding.object_name}: {finding.summary}")
    if finding.error:
        line += f" | error: {finding.error}"
    return line


class ReportGenerator:
    """Render a ComplianceReport.

    The output is a pure projection of the report: rendering the same
    report twice gives the same text.
    """

    def generate_text(self, report: ComplianceReport,
                      output_path: str | Path | None = None,
                      layout: str = "flat") -> str:
        """Generate the human-readable findings log."""
        if layout not in LAYOUTS:
            raise ValueError(f"Unknown layout {layout!r}; use one of {', '.join(LAYOUTS)}")

        lines = self._header(report)
        findings = sorted_findings(report.findings)

        if not findings:
            lines.append("No findings. All evaluated objects are compliant.")
        elif layout == "grouped":
            for environment in GROUP_ORDER:
                group = [f for f in findings if f.environment == environment]
                if not group:
                    continue
                lines.append("")
                lines.append(f"[{environment.value.upper()}] ({len(group)})")
                lines.extend(f"  {format_finding(f)}" for f in group)
        else:
            lines.extend(format_finding(f) for f in findings)

        if report.errors:
            lines.append("")
            lines.append("-" * 70)
            lines.append("ERRORS")
            lines.append("-" * 70)
            lines.extend(report.errors)

        lines.append("")
        lines.append("=" * 70)
        lines.append("End of Log")
        lines.append("=" * 70)

        text = "\n".join(lines)
        if output_path:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(text)
            logger.info("Findings log written: %s", output_path)
        return text

    def _header(self, report: ComplianceReport) -> list[str]:
        return [
            "=" * 70,
            f"DRIFTGUARD {report.check_type.value.upper()} COMPLIANCE LOG",
            "=" * 70,
            f"Run time:     {report.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            f"Target scope: {report.target.value}",
            f"Mode:         {report.mode.value}",
            f"Objects:      {report.objects_seen} seen, "
            f"{report.objects_evaluated} evaluated, {report.objects_skipped} skipped",
            f"Findings:     {len(report.findings)} "
            f"({report.applied_count} applied, {report.failed_count} failed)",
            "-" * 70,
        ]

    def to_dict(self, report: ComplianceReport) -> dict[str, Any]:
        return {
            "report_id": report.report_id,
            "check_type": report.check_type.value,
            "generated_at": report.generated_at.isoformat(),
            "target": report.target.value,
            "mode": report.mode.value,
            "summary": {
                "objects_seen": report.objects_seen,
                "objects_evaluated": report.objects_evaluated,
                "objects_skipped": report.objects_skipped,
                "total_findings": len(report.findings),
                "recorded": report.recorded_count,
                "applied": report.applied_count,
                "failed": report.failed_count,
            },
            "findings": [
                {
                    "finding_id": f.finding_id,
                    "kind": f.kind.value,
                    "object": f.object_name,
                    "object_id": f.object_id,
                    "scope": f.scope,
                    "environment": f.environment.value,
                    "key": f.key,
                    "port": f.port,
                    "violations": [v.value for v in f.violations],
                    "current_value": f.current_value,
                    "proposed_value": f.proposed_value,
                    "mode": f.mode.value,
                    "status": f.status.value,
                    "error": f.error,
                    "found_at": f.found_at.isoformat(),
                }
                for f in sorted_findings(report.findings)
            ],
            "errors": list(report.errors),
        }

    def generate_json(self, report: ComplianceReport,
                      output_path: str | Path | None = None) -> str:
        """Generate a JSON export of the report."""
        json_str = json.dumps(self.to_dict(report), indent=2)
        if output_path:
            Path(output_path).write_text(json_str)
            logger.info("JSON report generated: %s", output_path)
        return json_str

    def generate_csv(self, report: ComplianceReport,
                     output_path: str | Path) -> str:
        """Generate a CSV export of findings."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow([
                "Finding ID", "Kind", "Object", "Scope", "Environment", "Key",
                "Port", "Violations", "Current", "Proposed", "Mode", "Status",
                "Error",
            ])
            for finding in sorted_findings(report.findings):
                writer.writerow([
                    finding.finding_id,
                    finding.kind.value,
                    finding.object_name,
                    finding.scope,
                    finding.environment.value,
                    finding.key,
                    finding.port,
                    "; ".join(v.value for v in finding.violations),
                    finding.current_value,
                    finding.proposed_value,
                    finding.mode.value,
                    finding.status.value,
                    finding.error,
                ])

        logger.info("CSV report generated: %s", output_path)
        return str(output_path)

    def write(self, report: ComplianceReport, output_path: str | Path,
              fmt: str = "text", layout: str = "flat") -> str:
        """Write the report in ``fmt`` (text, json or csv)."""
        if fmt == "json":
            self.generate_json(report, output_path)
        elif fmt == "csv":
            self.generate_csv(report, output_path)
        else:
            self.generate_text(report, output_path, layout=layout)
        return str(output_path)
