"""Tag compliance evaluation."""

from __future__ import annotations

import logging

from driftguard.engine.classifier import classify_environment, infer_app, infer_team
from driftguard.models import (
    EnvironmentPolicy,
    Finding,
    FindingKind,
    PolicySet,
    RunMode,
    TargetObject,
)

logger = logging.getLogger(__name__)

APP_TAG = "App"
TEAM_TAG = "Team"


class TagEvaluator:
    """Evaluates a resource's tags against the policy for its environment.

    Checks run in a fixed order: required tags, then App, then Team. Only
    missing keys are reported; a present key with another value is left
    alone.
    """

    def __init__(self, policy: PolicySet) -> None:
        self.policy = policy

    def evaluate(self, obj: TargetObject,
                 mode: RunMode = RunMode.AUDIT) -> list[Finding]:
        """Return the findings for one resource."""
        environment = classify_environment(obj.scope, obj.name)
        env_policy = self.policy.for_environment(environment)
        findings: list[Finding] = []

        required: dict[str, str] = {}
        if env_policy is not None:
            required = env_policy.required_tag_map
            findings.extend(self._check_required(obj, env_policy, mode))

        if APP_TAG not in obj.tags and APP_TAG not in required:
            app = infer_app(obj.scope, self.policy.app_pattern)
            if app:
                findings.append(self._make_finding(
                    obj, env_policy, mode, FindingKind.MISSING_APP_TAG, APP_TAG, app))

        if TEAM_TAG not in obj.tags and TEAM_TAG not in required:
            team = infer_team(obj.scope, self.policy.team_rules)
            if team:
                findings.append(self._make_finding(
                    obj, env_policy, mode, FindingKind.MISSING_TEAM_TAG, TEAM_TAG, team))

        logger.debug("%s (%s): %d tag findings",
                     obj.name, environment.value, len(findings))
        return findings

    def _check_required(self, obj: TargetObject, env_policy: EnvironmentPolicy,
                        mode: RunMode) -> list[Finding]:
        findings = []
        for key, value in env_policy.required_tags:
            if key not in obj.tags:
                findings.append(self._make_finding(
                    obj, env_policy, mode, FindingKind.MISSING_TAG, key, value))
        return findings

    def _make_finding(self, obj: TargetObject, env_policy: EnvironmentPolicy | None,
                      mode: RunMode, kind: FindingKind, key: str,
                      value: str) -> Finding:
        environment = (env_policy.environment if env_policy is not None
                       else classify_environment(obj.scope, obj.name))
        return Finding(
            kind=kind,
            object_name=obj.name,
            object_id=obj.identifier,
            scope=obj.scope,
            environment=environment,
            mode=mode,
            key=key,
            proposed_value=value,
        )
