"""Tests for the remediation engine and the in-memory provider."""

import pytest

from driftguard.engine.nsg import NsgEvaluator
from driftguard.engine.tags import TagEvaluator
from driftguard.models import (
    Environment,
    FindingStatus,
    NetworkSecurityGroup,
    RunMode,
    SecurityRule,
)
from driftguard.providers.base import MutationError
from driftguard.providers.memory import InMemoryProvider
from driftguard.remediate.engine import RemediationEngine, format_plan_text


class TestRemediationEngine:
    def test_audit_never_mutates(self, policy, provider, resources):
        engine = RemediationEngine(provider)
        findings = TagEvaluator(policy).evaluate(resources[0])
        applied = engine.apply_all(findings, RunMode.AUDIT)
        assert provider.mutation_count == 0
        assert all(f.status == FindingStatus.RECORDED for f in applied)

    def test_remediate_sets_one_tag_per_finding(self, policy, provider, resources):
        engine = RemediationEngine(provider)
        findings = TagEvaluator(policy).evaluate(resources[0], RunMode.REMEDIATE)
        applied = engine.apply_all(findings, RunMode.REMEDIATE)
        assert provider.mutation_count == len(findings) == 5
        assert all(f.status == FindingStatus.APPLIED for f in applied)
        assert provider.get_resource("res-1").tags == {
            "Environment": "dev", "CostCenter": "R&D", "Owner": "DevOpsTeam",
            "App": "app1", "Team": "AppTeam",
        }

    def test_apply_returns_new_finding(self, policy, provider, resources):
        finding = TagEvaluator(policy).evaluate(resources[0])[0]
        applied = RemediationEngine(provider).apply(finding, RunMode.REMEDIATE)
        assert applied is not finding
        assert finding.status == FindingStatus.RECORDED
        assert applied.status == FindingStatus.APPLIED
        assert applied.finding_id == finding.finding_id

    def test_failed_tag_update_is_recorded(self, policy, resources):
        provider = InMemoryProvider(resources=resources, fail_tags_for={"res-1"})
        finding = TagEvaluator(policy).evaluate(resources[0])[0]
        applied = RemediationEngine(provider).apply(finding, RunMode.REMEDIATE)
        assert applied.status == FindingStatus.APPLY_FAILED
        assert "rejected" in applied.error

    def test_rule_replacement(self, policy, provider, nsgs):
        finding = NsgEvaluator(policy.for_environment(Environment.DEV)).evaluate(nsgs[0])[0]
        applied = RemediationEngine(provider).apply(finding, RunMode.REMEDIATE)
        assert applied.status == FindingStatus.APPLIED
        stored = provider.get_network_security_group("nsg-web-dev")
        rule = stored.get_rule("allow-ssh")
        assert rule.source_address_prefix == "10.10.0.0/16"
        assert rule.priority == 100
        assert [r.name for r in stored.rules] == ["allow-ssh", "allow-rdp"]

    def test_failed_add_restores_original_rule(self, policy, nsgs):
        provider = InMemoryProvider(network_security_groups=nsgs,
                                    fail_add_for={"nsg-web-dev/allow-ssh"})
        finding = NsgEvaluator(policy.for_environment(Environment.DEV)).evaluate(nsgs[0])[0]
        applied = RemediationEngine(provider).apply(finding, RunMode.REMEDIATE)
        assert applied.status == FindingStatus.APPLY_FAILED
        assert "restored" in applied.error
        rule = provider.get_network_security_group("nsg-web-dev").get_rule("allow-ssh")
        assert rule.source_address_prefix == "*"


class TestInMemoryProvider:
    def test_listing_returns_copies(self, provider):
        listed = provider.list_resources()
        listed[0].tags["Owner"] = "x"
        assert "Owner" not in provider.get_resource("res-1").tags

    def test_unknown_resource(self, provider):
        with pytest.raises(MutationError, match="not found"):
            provider.set_resource_tags("missing", {"a": "b"})

    def test_unknown_rule(self, provider, nsgs):
        with pytest.raises(MutationError, match="Rule not found"):
            provider.replace_security_rule(nsgs[0], "missing", nsgs[0].rules[0])


class TestPlanText:
    def test_tag_plan(self, policy, resources):
        finding = TagEvaluator(policy).evaluate(resources[0])[0]
        text = format_plan_text(finding)
        assert "REMEDIATION PLAN: vm-app1" in text
        assert "Set tag Environment=dev" in text
        assert "ROLLBACK" in text

    def test_nsg_plan(self, policy, nsgs):
        finding = NsgEvaluator(policy.for_environment(Environment.DEV)).evaluate(nsgs[0])[0]
        text = format_plan_text(finding)
        assert "Delete rule allow-ssh" in text
        assert "priority 100" in text
        assert "10.10.0.0/16" in text

    def test_same_named_nsgs_kept_apart(self, policy):
        nsgs = [
            NetworkSecurityGroup(name="nsg-web", scope=scope, rules=[
                SecurityRule(name="allow-ssh", priority=100, source_address_prefix="*",
                             destination_ports=["22"])])
            for scope in ("rg-a-dev", "rg-b-dev")
        ]
        provider = InMemoryProvider(network_security_groups=nsgs)
        assert len(provider.list_network_security_groups()) == 2

        finding = NsgEvaluator(policy.for_environment(Environment.DEV)).evaluate(nsgs[1])[0]
        applied = RemediationEngine(provider).apply(finding, RunMode.REMEDIATE)
        assert applied.status == FindingStatus.APPLIED
        untouched = provider.get_network_security_group("nsg-web", scope="rg-a-dev")
        replaced = provider.get_network_security_group("nsg-web", scope="rg-b-dev")
        assert untouched.get_rule("allow-ssh").source_address_prefix == "*"
        assert replaced.get_rule("allow-ssh").source_address_prefix == "10.10.0.0/16"
