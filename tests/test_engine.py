"""Tests for classification, tag evaluation and NSG evaluation."""

import pytest

from driftguard.engine.classifier import classify_environment, infer_app, infer_team
from driftguard.engine.nsg import (
    NsgEvaluator,
    build_replacement,
    is_replacement,
    port_allowed,
    same_network,
)
from driftguard.engine.tags import TagEvaluator
from driftguard.models import (
    Environment,
    FindingKind,
    NetworkSecurityGroup,
    RunMode,
    SecurityRule,
    TargetObject,
    TeamRule,
    Violation,
)


class TestClassifier:
    @pytest.mark.parametrize("scope,name,expected", [
        ("rg-app1-dev", "", Environment.DEV),
        ("rg-storage-prod", "", Environment.PROD),
        ("RG-APP1-DEV", "", Environment.DEV),
        ("rg-shared", "vm-web-prod", Environment.PROD),
        ("rg-shared", "vm-web", Environment.UNKNOWN),
        ("", "", Environment.UNKNOWN),
    ])
    def test_classify_environment(self, scope, name, expected):
        assert classify_environment(scope, name) == expected

    def test_scope_wins_over_name(self):
        assert classify_environment("rg-app1-dev", "vm-prod") == Environment.DEV

    def test_dev_marker_checked_first(self):
        assert classify_environment("rg-dev-prod") == Environment.DEV

    def test_infer_app(self, policy):
        assert infer_app("rg-app1-dev", policy.app_pattern) == "app1"
        assert infer_app("rg-storage-prod", policy.app_pattern) is None
        assert infer_app("", policy.app_pattern) is None

    @pytest.mark.parametrize("scope,team", [
        ("rg-aci-dev", "ContainerTeam"),
        ("rg-dns-prod", "NetworkTeam"),
        ("rg-storage-prod", "StorageTeam"),
        ("rg-app42", "AppTeam"),
        ("rg-app42-data", "AppTeam"),
        ("rg-foo-data", "DataTeam"),
        ("rg-shared", None),
    ])
    def test_infer_team_first_match_wins(self, policy, scope, team):
        assert infer_team(scope, policy.team_rules) == team

    def test_infer_team_respects_rule_order(self):
        rules = (TeamRule(pattern="-data", team="DataTeam"),
                 TeamRule(pattern=r"^rg-app\d+", team="AppTeam"))
        assert infer_team("rg-app42-data", rules) == "DataTeam"


class TestTagEvaluator:
    def test_untagged_dev_resource(self, policy):
        obj = TargetObject(name="vm-app1", scope="rg-app1-dev", resource_id="res-1")
        findings = TagEvaluator(policy).evaluate(obj)
        assert [(f.key, f.proposed_value) for f in findings] == [
            ("Environment", "dev"),
            ("CostCenter", "R&D"),
            ("Owner", "DevOpsTeam"),
            ("App", "app1"),
            ("Team", "AppTeam"),
        ]
        assert [f.kind for f in findings[-2:]] == [
            FindingKind.MISSING_APP_TAG, FindingKind.MISSING_TEAM_TAG]
        assert all(f.environment == Environment.DEV for f in findings)
        assert all(f.object_id == "res-1" for f in findings)

    def test_present_key_with_other_value_is_not_a_finding(self, policy):
        obj = TargetObject(name="st", scope="rg-storage-prod",
                           tags={"Environment": "dev", "CostCenter": "x",
                                 "Owner": "someone", "Team": "Other"})
        assert TagEvaluator(policy).evaluate(obj) == []

    def test_partial_tags(self, policy):
        obj = TargetObject(name="st", scope="rg-storage-prod", tags={"Environment": "prod"})
        findings = TagEvaluator(policy).evaluate(obj)
        assert [(f.key, f.proposed_value) for f in findings] == [
            ("CostCenter", "Operations"),
            ("Owner", "ProdOpsTeam"),
            ("Team", "StorageTeam"),
        ]

    def test_unknown_environment_only_infers_ownership(self, policy):
        obj = TargetObject(name="dns1", scope="rg-dns-core")
        findings = TagEvaluator(policy).evaluate(obj)
        assert [(f.key, f.proposed_value) for f in findings] == [("Team", "NetworkTeam")]
        assert findings[0].environment == Environment.UNKNOWN

    def test_mode_is_carried(self, policy):
        obj = TargetObject(name="vm", scope="rg-app1-dev")
        findings = TagEvaluator(policy).evaluate(obj, RunMode.REMEDIATE)
        assert all(f.mode == RunMode.REMEDIATE for f in findings)


def _nsg(*rules, scope="rg-web-dev"):
    return NetworkSecurityGroup(name="nsg1", scope=scope, rules=list(rules))


class TestNsgEvaluator:
    def test_permissive_source_on_allowed_port(self, policy):
        rule = SecurityRule(name="ssh", priority=100, source_address_prefix="*",
                            destination_ports=["22"])
        evaluator = NsgEvaluator(policy.for_environment(Environment.DEV))
        findings = evaluator.evaluate_rule(rule, _nsg(rule))
        assert len(findings) == 1
        assert findings[0].violations == (Violation.PERMISSIVE_SOURCE,)
        assert findings[0].port == "22"

    def test_disallowed_port_with_specific_source(self, policy):
        rule = SecurityRule(name="web", priority=200, source_address_prefix="10.0.0.0/24",
                            destination_ports=["80"])
        evaluator = NsgEvaluator(policy.for_environment(Environment.PROD))
        findings = evaluator.evaluate_rule(rule, _nsg(rule, scope="rg-web-prod"))
        assert len(findings) == 1
        assert findings[0].violations == (Violation.DISALLOWED_PORT,)
        assert findings[0].environment == Environment.PROD

    def test_both_triggers_give_one_finding(self, policy):
        rule = SecurityRule(name="http", priority=300, source_address_prefix="*",
                            destination_ports=["80"])
        findings = NsgEvaluator(policy.for_environment(Environment.DEV)).evaluate_rule(
            rule, _nsg(rule))
        assert len(findings) == 1
        assert findings[0].violations == (
            Violation.PERMISSIVE_SOURCE, Violation.DISALLOWED_PORT)

    def test_each_port_evaluated(self, policy):
        rule = SecurityRule(name="multi", priority=100, source_address_prefix="10.0.0.0/24",
                            destination_ports=["22", "80", "8080"])
        findings = NsgEvaluator(policy.for_environment(Environment.DEV)).evaluate_rule(
            rule, _nsg(rule))
        assert [f.port for f in findings] == ["80", "8080"]
        assert findings[0].replacement == findings[1].replacement
        assert findings[0].replacement is not findings[1].replacement

    @pytest.mark.parametrize("rule", [
        SecurityRule(name="out", priority=100, direction="Outbound",
                     source_address_prefix="*", destination_ports=["80"]),
        SecurityRule(name="deny", priority=100, access="Deny",
                     source_address_prefix="*", destination_ports=["80"]),
    ])
    def test_non_inbound_allow_rules_skipped(self, policy, rule):
        evaluator = NsgEvaluator(policy.for_environment(Environment.DEV))
        assert evaluator.evaluate_rule(rule, _nsg(rule)) == []

    def test_compliant_rule(self, policy):
        rule = SecurityRule(name="rdp", priority=100, source_address_prefix="10.0.0.0/24",
                            destination_ports=["3389"])
        evaluator = NsgEvaluator(policy.for_environment(Environment.DEV))
        assert evaluator.evaluate_rule(rule, _nsg(rule)) == []

    def test_replaced_rule_is_tolerated(self, policy):
        dev = policy.for_environment(Environment.DEV)
        original = SecurityRule(name="web", priority=100, source_address_prefix="*",
                                destination_ports=["80"])
        rule = build_replacement(original, dev)
        assert NsgEvaluator(dev).evaluate_rule(rule, _nsg(rule)) == []

    def test_hand_made_rule_from_safe_source_still_flagged(self, policy):
        rule = SecurityRule(name="mysql", priority=120, source_address_prefix="10.20.0.0/16",
                            destination_ports=["3306"])
        evaluator = NsgEvaluator(policy.for_environment(Environment.PROD))
        findings = evaluator.evaluate_rule(rule, _nsg(rule, scope="rg-data-prod"))
        assert [f.port for f in findings] == ["3306"]
        assert findings[0].violations == (Violation.DISALLOWED_PORT,)

    def test_marked_rule_with_other_source_still_flagged(self, policy):
        dev = policy.for_environment(Environment.DEV)
        rule = SecurityRule(name="web", priority=100, source_address_prefix="10.0.0.0/24",
                            destination_ports=["80"],
                            description="Restricted to 10.10.0.0/16 by DriftGuard")
        assert not is_replacement(rule, dev)
        assert len(NsgEvaluator(dev).evaluate_rule(rule, _nsg(rule))) == 1

    def test_finding_replacements_are_independent(self, policy):
        rule = SecurityRule(name="multi", priority=100, source_address_prefix="*",
                            destination_ports=["80", "8080"])
        findings = NsgEvaluator(policy.for_environment(Environment.DEV)).evaluate_rule(
            rule, _nsg(rule))
        findings[0].replacement.destination_ports.append("9999")
        assert findings[1].replacement.destination_ports == ["80", "8080"]

    def test_replacement_preserves_rule_shape(self, policy):
        rule = SecurityRule(name="web", priority=250, protocol="Tcp",
                            source_address_prefix="*", destination_address_prefix="10.1.2.3",
                            destination_ports=["80", "443"])
        replacement = build_replacement(rule, policy.for_environment(Environment.PROD))
        assert replacement.name == "web"
        assert replacement.priority == 250
        assert replacement.protocol == "Tcp"
        assert replacement.direction == rule.direction
        assert replacement.destination_ports == ["80", "443"]
        assert replacement.source_address_prefix == "10.20.0.0/16"
        assert replacement.destination_address_prefix == "*"
        assert is_replacement(replacement, policy.for_environment(Environment.PROD))

    def test_evaluate_whole_nsg(self, policy, nsgs):
        evaluator = NsgEvaluator(policy.for_environment(Environment.DEV))
        findings = evaluator.evaluate(nsgs[0])
        assert [f.key for f in findings] == ["allow-ssh"]


class TestPortHelpers:
    @pytest.mark.parametrize("port,expected", [
        ("22", True), (" 3389 ", True), ("80", False),
        ("*", False), ("20-30", False), ("", False),
    ])
    def test_port_allowed(self, port, expected):
        assert port_allowed(port, frozenset({22, 3389})) is expected

    def test_same_network(self):
        assert same_network("10.10.0.0/16", "10.10.0.0/16")
        assert not same_network("10.10.5.0/16", "10.10.0.0/16")
        assert not same_network("10.0.0.0/24", "10.10.0.0/16")
        assert not same_network("*", "10.10.0.0/16")
        assert not same_network("10.0.0.0/24", "")
