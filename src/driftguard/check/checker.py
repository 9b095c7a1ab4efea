"""Compliance checking orchestrator: one pass over provider objects."""

from __future__ import annotations

import logging
from pathlib import Path

from driftguard.config import RunConfig
from driftguard.engine.classifier import classify_environment, in_scope
from driftguard.engine.nsg import NsgEvaluator
from driftguard.engine.tags import TagEvaluator
from driftguard.models import (
    CheckType,
    ComplianceReport,
    Environment,
    PolicySet,
)
from driftguard.policy.loader import PolicyLoader
from driftguard.providers.base import CloudProvider
from driftguard.remediate.engine import RemediationEngine

logger = logging.getLogger(__name__)


class ComplianceChecker:
    """Main compliance orchestrator.

    Fetches objects from a provider, filters them by target scope,
    evaluates them and hands each finding to the remediation engine. A
    failure on one object is logged and recorded on the report; the run
    moves on to the next object.
    """

    def __init__(self, policy: PolicySet | None = None,
                 policy_file: str | Path | None = None) -> None:
        self.loader = PolicyLoader()
        self.policy = policy or self.loader.load(policy_file)
        self.tag_evaluator = TagEvaluator(self.policy)
        logger.info("ComplianceChecker initialized with policy from %s",
                    self.policy.source)

    def check_tags(self, provider: CloudProvider,
                   run: RunConfig) -> ComplianceReport:
        """Audit or remediate resource tags."""
        report = ComplianceReport(check_type=CheckType.TAGS,
                                  target=run.target, mode=run.mode)
        remediator = RemediationEngine(provider)

        resources = provider.list_resources()
        report.objects_seen = len(resources)

        for obj in resources:
            environment = classify_environment(obj.scope, obj.name)
            if not in_scope(environment, run.target):
                report.objects_skipped += 1
                continue
            try:
                for finding in self.tag_evaluator.evaluate(obj, run.mode):
                    report.findings.append(remediator.apply(finding, run.mode))
                report.objects_evaluated += 1
            except Exception as e:
                logger.warning("Failed to evaluate %s: %s", obj.name, e)
                report.errors.append(f"{obj.name}: {e}")

        self._log_summary(report)
        return report

    def check_nsgs(self, provider: CloudProvider,
                   run: RunConfig) -> ComplianceReport:
        """Audit or remediate inbound NSG rules."""
        report = ComplianceReport(check_type=CheckType.NSG,
                                  target=run.target, mode=run.mode)
        remediator = RemediationEngine(provider)

        nsgs = provider.list_network_security_groups()
        report.objects_seen = len(nsgs)

        for nsg in nsgs:
            environment = classify_environment(nsg.scope, nsg.name)
            env_policy = self.policy.for_environment(environment)
            if not in_scope(environment, run.target):
                report.objects_skipped += 1
                continue
            if env_policy is None:
                if environment == Environment.UNKNOWN:
                    logger.info("Skipping %s: no environment for scope %s",
                                nsg.name, nsg.scope)
                else:
                    logger.info("Skipping %s: no %s policy",
                                nsg.name, environment.value)
                report.objects_skipped += 1
                continue
            try:
                evaluator = NsgEvaluator(env_policy)
                for rule in nsg.rules:
                    for finding in evaluator.evaluate_rule(rule, nsg, run.mode):
                        report.findings.append(remediator.apply(finding, run.mode))
                report.objects_evaluated += 1
            except Exception as e:
                logger.warning("Failed to evaluate %s: %s", nsg.name, e)
                report.errors.append(f"{nsg.name}: {e}")

        self._log_summary(report)
        return report

    def run(self, check_type: CheckType, provider: CloudProvider,
            run: RunConfig) -> ComplianceReport:
        if check_type == CheckType.NSG:
            return self.check_nsgs(provider, run)
        return self.check_tags(provider, run)

    def _log_summary(self, report: ComplianceReport) -> None:
        logger.info(
            "%s %s run (%s): %d objects, %d evaluated, %d skipped, "
            "%d findings, %d applied, %d failed, %d errors",
            report.check_type.value, report.mode.value, report.target.value,
            report.objects_seen, report.objects_evaluated, report.objects_skipped,
            len(report.findings), report.applied_count, report.failed_count,
            len(report.errors),
        )
