"""NSG inbound rule compliance evaluation."""

from __future__ import annotations

import copy
import ipaddress
import logging

from driftguard.models import (
    EnvironmentPolicy,
    Finding,
    FindingKind,
    NetworkSecurityGroup,
    RunMode,
    SecurityRule,
    Violation,
)

logger = logging.getLogger(__name__)

WILDCARD = "*"
# Closes the description of every rule written by build_replacement.
REPLACEMENT_MARKER = "by DriftGuard"


def port_allowed(port: str, allowed_ports: frozenset[int]) -> bool:
    """A port token is allowed only if it is a single listed port number.

    Ranges such as ``1000-2000`` and the ``*`` wildcard never are.
    """
    token = port.strip()
    if not token.isdigit():
        return False
    return int(token) in allowed_ports


def same_network(prefix: str, cidr: str) -> bool:
    """Compare two address prefixes as networks, falling back to text.

    A prefix with host bits set (``10.20.7.0/16``) is not the same network
    as ``10.20.0.0/16``.
    """
    if not prefix or not cidr:
        return False
    try:
        return ipaddress.ip_network(prefix) == ipaddress.ip_network(cidr)
    except ValueError:
        return prefix.strip() == cidr.strip()


def is_replacement(rule: SecurityRule, policy: EnvironmentPolicy) -> bool:
    """Whether ``rule`` is one DriftGuard wrote for this environment."""
    return (rule.description.endswith(REPLACEMENT_MARKER)
            and same_network(rule.source_address_prefix, policy.safe_source))


def build_replacement(rule: SecurityRule, policy: EnvironmentPolicy) -> SecurityRule:
    """Build the rule that replaces a non-compliant one.

    Name, priority, protocol, direction, access and destination ports are
    kept as-is. The source is pinned to the safe CIDR and the destination
    address opened to any.
    """
    return SecurityRule(
        name=rule.name,
        priority=rule.priority,
        direction=rule.direction,
        access=rule.access,
        protocol=rule.protocol,
        source_address_prefix=policy.safe_source,
        source_port_range=rule.source_port_range,
        destination_address_prefix=WILDCARD,
        destination_ports=list(rule.destination_ports),
        description=f"Restricted to {policy.safe_source} {REPLACEMENT_MARKER}",
    )


class NsgEvaluator:
    """Evaluates inbound Allow rules port by port.

    Only violations are reported; compliant and skipped rules produce
    nothing.
    """

    def __init__(self, policy: EnvironmentPolicy) -> None:
        self.policy = policy

    def evaluate_rule(self, rule: SecurityRule, nsg: NetworkSecurityGroup,
                      mode: RunMode = RunMode.AUDIT) -> list[Finding]:
        """Return one finding per non-compliant destination port."""
        if not rule.is_inbound_allow:
            return []

        permissive = rule.source_address_prefix.strip() == WILDCARD
        # Ports on a rule DriftGuard already replaced were kept on purpose.
        replaced = is_replacement(rule, self.policy)

        replacement: SecurityRule | None = None
        findings: list[Finding] = []
        for port in rule.destination_ports:
            violations: list[Violation] = []
            if permissive:
                violations.append(Violation.PERMISSIVE_SOURCE)
            if not replaced and not port_allowed(port, self.policy.allowed_ports):
                violations.append(Violation.DISALLOWED_PORT)
            if not violations:
                continue

            if replacement is None:
                replacement = build_replacement(rule, self.policy)
            findings.append(Finding(
                kind=FindingKind.NSG_RULE,
                object_name=nsg.name,
                object_id=nsg.identifier,
                scope=nsg.scope,
                environment=self.policy.environment,
                mode=mode,
                key=rule.name,
                port=port.strip(),
                current_value=rule.source_address_prefix,
                proposed_value=self.policy.safe_source,
                violations=tuple(violations),
                replacement=copy.deepcopy(replacement),
            ))

        if findings:
            logger.debug("%s/%s: %d non-compliant ports",
                         nsg.name, rule.name, len(findings))
        return findings

    def evaluate(self, nsg: NetworkSecurityGroup,
                 mode: RunMode = RunMode.AUDIT) -> list[Finding]:
        """Evaluate every rule of an NSG in order."""
        findings: list[Finding] = []
        for rule in nsg.rules:
            findings.extend(self.evaluate_rule(rule, nsg, mode))
        return findings
