"""Core data models for DriftGuard."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class Environment(enum.Enum):
    """Environments a resource can be classified into."""

    DEV = "dev"
    PROD = "prod"
    UNKNOWN = "other"


class TargetScope(enum.Enum):
    """Which environments a run covers."""

    DEV = "dev"
    PROD = "prod"
    ALL = "all"

    def includes(self, environment: Environment) -> bool:
        if self is TargetScope.ALL:
            return True
        return environment.value == self.value


class RunMode(enum.Enum):
    """Audit only records findings; remediate also applies them."""

    AUDIT = "audit"
    REMEDIATE = "remediate"


class CheckType(enum.Enum):
    TAGS = "tags"
    NSG = "nsg"


class FindingKind(enum.Enum):
    """The specific non-compliance a finding describes."""

    MISSING_TAG = "missing_tag"
    MISSING_APP_TAG = "missing_app_tag"
    MISSING_TEAM_TAG = "missing_team_tag"
    NSG_RULE = "nsg_rule"


class FindingStatus(enum.Enum):
    RECORDED = "recorded"
    APPLIED = "applied"
    APPLY_FAILED = "apply_failed"


class Violation(enum.Enum):
    """Why an inbound rule port was flagged."""

    PERMISSIVE_SOURCE = "permissive_source"
    DISALLOWED_PORT = "disallowed_port"


@dataclass
class TargetObject:
    """A cloud resource under evaluation."""

    name: str
    scope: str
    resource_id: str = ""
    resource_type: str = ""
    location: str = ""
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def identifier(self) -> str:
        return self.resource_id or f"{self.scope}/{self.name}"


@dataclass
class SecurityRule:
    """A single NSG security rule."""

    name: str
    priority: int
    direction: str = "Inbound"
    access: str = "Allow"
    protocol: str = "*"
    source_address_prefix: str = "*"
    source_port_range: str = "*"
    destination_address_prefix: str = "*"
    destination_ports: list[str] = field(default_factory=list)
    description: str = ""

    @property
    def is_inbound_allow(self) -> bool:
        return (self.direction.lower() == "inbound"
                and self.access.lower() == "allow")


@dataclass
class NetworkSecurityGroup:
    """A network security group and its rules."""

    name: str
    scope: str
    resource_id: str = ""
    location: str = ""
    rules: list[SecurityRule] = field(default_factory=list)

    @property
    def identifier(self) -> str:
        return self.resource_id or f"{self.scope}/{self.name}"

    def get_rule(self, name: str) -> SecurityRule | None:
        for rule in self.rules:
            if rule.name == name:
                return rule
        return None


@dataclass(frozen=True)
class EnvironmentPolicy:
    """Policy for one environment."""

    environment: Environment
    required_tags: tuple[tuple[str, str], ...] = ()
    allowed_ports: frozenset[int] = frozenset()
    safe_source: str = ""

    @property
    def required_tag_map(self) -> dict[str, str]:
        return dict(self.required_tags)


@dataclass(frozen=True)
class TeamRule:
    """Maps a scope-label regex to an owning team."""

    pattern: str
    team: str


@dataclass(frozen=True)
class PolicySet:
    """All policies for a run. Team rules are evaluated in order."""

    environments: tuple[EnvironmentPolicy, ...]
    team_rules: tuple[TeamRule, ...] = ()
    app_pattern: str = r"^rg-(app\d+)-"
    source: str = "builtin"

    def for_environment(self, environment: Environment) -> EnvironmentPolicy | None:
        for policy in self.environments:
            if policy.environment == environment:
                return policy
        return None


@dataclass(frozen=True)
class Finding:
    """One non-compliance on one object, plus its correction."""

    kind: FindingKind
    object_name: str
    object_id: str
    scope: str
    environment: Environment
    mode: RunMode
    key: str = ""
    proposed_value: str = ""
    current_value: str = ""
    port: str = ""
    violations: tuple[Violation, ...] = ()
    replacement: SecurityRule | None = None
    status: FindingStatus = FindingStatus.RECORDED
    error: str = ""
    finding_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    found_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def summary(self) -> str:
        if self.kind == FindingKind.NSG_RULE:
            reasons = ", ".join(v.value for v in self.violations)
            return (f"rule {self.key} port {self.port} ({reasons}): "
                    f"source {self.current_value} -> {self.proposed_value}")
        return f"missing tag {self.key}={self.proposed_value}"


@dataclass
class ComplianceReport:
    """The result of one audit or remediation run."""

    check_type: CheckType
    target: TargetScope
    mode: RunMode
    report_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    generated_at: datetime = field(default_factory=datetime.utcnow)
    findings: list[Finding] = field(default_factory=list)
    objects_seen: int = 0
    objects_evaluated: int = 0
    objects_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def _count(self, status: FindingStatus) -> int:
        return sum(1 for f in self.findings if f.status == status)

    @property
    def recorded_count(self) -> int:
        return self._count(FindingStatus.RECORDED)

    @property
    def applied_count(self) -> int:
        return self._count(FindingStatus.APPLIED)

    @property
    def failed_count(self) -> int:
        return self._count(FindingStatus.APPLY_FAILED)

    @property
    def is_compliant(self) -> bool:
        return not self.findings and not self.errors
