"""Remediation engine: applies findings through a provider."""

from __future__ import annotations

import dataclasses
import logging

from driftguard.models import (
    Finding,
    FindingKind,
    FindingStatus,
    NetworkSecurityGroup,
    RunMode,
)
from driftguard.providers.base import CloudProvider, MutationError

logger = logging.getLogger(__name__)


class RemediationEngine:
    """Turns recorded findings into applied (or failed) ones.

    Audit mode never touches the provider. Remediate mode makes exactly one
    mutating call per finding; a MutationError is captured on the returned
    finding instead of being raised.
    """

    def __init__(self, provider: CloudProvider) -> None:
        self.provider = provider

    def apply(self, finding: Finding, mode: RunMode) -> Finding:
        """Return ``finding`` marked as recorded, applied or apply_failed."""
        if mode == RunMode.AUDIT:
            return dataclasses.replace(finding, mode=mode, status=FindingStatus.RECORDED)

        try:
            if finding.kind == FindingKind.NSG_RULE:
                self._replace_rule(finding)
            else:
                self.provider.set_resource_tags(
                    finding.object_id, {finding.key: finding.proposed_value})
        except MutationError as e:
            logger.error("Remediation failed for %s: %s", finding.object_name, e)
            return dataclasses.replace(
                finding, mode=mode, status=FindingStatus.APPLY_FAILED, error=str(e))

        logger.info("Remediated %s: %s", finding.object_name, finding.summary)
        return dataclasses.replace(finding, mode=mode, status=FindingStatus.APPLIED)

    def apply_all(self, findings: list[Finding], mode: RunMode) -> list[Finding]:
        return [self.apply(f, mode) for f in findings]

    def _replace_rule(self, finding: Finding) -> None:
        if finding.replacement is None:
            raise MutationError(f"No replacement rule for {finding.key}")
        nsg = NetworkSecurityGroup(
            name=finding.object_name,
            scope=finding.scope,
            resource_id=finding.object_id,
        )
        self.provider.replace_security_rule(nsg, finding.key, finding.replacement)


def format_plan_text(finding: Finding) -> str:
    """Describe the change a finding would make, and how to undo it."""
    lines = [
        f"{'=' * 60}",
        f"REMEDIATION PLAN: {finding.object_name}",
        f"Scope: {finding.scope} ({finding.environment.value})",
        f"{'=' * 60}",
        "",
        "CHANGE:",
        "-" * 40,
    ]

    if finding.kind == FindingKind.NSG_RULE and finding.replacement is not None:
        rule = finding.replacement
        ports = ",".join(rule.destination_ports)
        lines.extend([
            f"Delete rule {finding.key} (source {finding.current_value})",
            f"Add rule {rule.name}: priority {rule.priority}, {rule.direction} "
            f"{rule.access} {rule.protocol}",
            f"  source {rule.source_address_prefix} -> "
            f"{rule.destination_address_prefix}:{ports}",
            "",
            "ROLLBACK:",
            "-" * 40,
            f"Restore rule {finding.key} with source {finding.current_value}",
        ])
    else:
        lines.extend([
            f"Set tag {finding.key}={finding.proposed_value}",
            "",
            "ROLLBACK:",
            "-" * 40,
            f"Remove tag {finding.key}",
        ])

    return "\n".join(lines)
