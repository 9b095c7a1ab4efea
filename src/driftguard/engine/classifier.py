"""Environment classification and ownership inference from names."""

from __future__ import annotations

import logging
import re

from driftguard.models import Environment, TargetScope, TeamRule

logger = logging.getLogger(__name__)

# Checked against the scope label first, then the object name.
ENVIRONMENT_MARKERS: tuple[tuple[str, Environment], ...] = (
    ("-dev", Environment.DEV),
    ("-prod", Environment.PROD),
)


def classify_environment(scope: str, name: str = "") -> Environment:
    """Classify an object by its scope label, then its name.

    Returns Environment.UNKNOWN when neither contains a known marker.
    """
    for candidate in (scope, name):
        value = (candidate or "").lower()
        for marker, environment in ENVIRONMENT_MARKERS:
            if marker in value:
                return environment
    return Environment.UNKNOWN


def in_scope(environment: Environment, target: TargetScope) -> bool:
    """Whether an object classified as ``environment`` belongs to the run."""
    return target.includes(environment)


def infer_app(scope: str, app_pattern: str) -> str | None:
    """Return the first capture group of ``app_pattern`` in the scope label."""
    match = re.search(app_pattern, scope or "")
    if match and match.group(1):
        return match.group(1)
    return None


def infer_team(scope: str, team_rules: tuple[TeamRule, ...]) -> str | None:
    """Return the team of the first rule whose pattern matches ``scope``."""
    for rule in team_rules:
        if re.search(rule.pattern, scope or ""):
            logger.debug("Scope %s matched team rule %s -> %s",
                         scope, rule.pattern, rule.team)
            return rule.team
    return None
