"""YAML policy loader: loads and validates environment policies."""

from __future__ import annotations

import ipaddress
import logging
import re
from pathlib import Path
from typing import Any

import yaml

from driftguard.config import ConfigurationError
from driftguard.models import Environment, EnvironmentPolicy, PolicySet, TeamRule

logger = logging.getLogger(__name__)

DEFAULT_POLICY_FILE = Path(__file__).parent / "default.yml"

ENVIRONMENT_MAP = {
    "dev": Environment.DEV,
    "prod": Environment.PROD,
}


class PolicyLoader:
    """Load a PolicySet from YAML files."""

    def load_file(self, filepath: str | Path) -> PolicySet:
        """Load and validate a policy from a single YAML file."""
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Policy file not found: {filepath}")

        with open(filepath) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {filepath}: {e}") from e

        policy = self.parse(data, source=str(filepath))
        logger.info("Loaded policy for %d environments from %s",
                    len(policy.environments), filepath.name)
        return policy

    def load_builtin(self) -> PolicySet:
        """Load the policy shipped with DriftGuard."""
        return self.load_file(DEFAULT_POLICY_FILE)

    def load(self, filepath: str | Path | None = None) -> PolicySet:
        """Load a policy file, falling back to the built-in policy."""
        if filepath:
            return self.load_file(filepath)
        return self.load_builtin()

    def parse(self, data: Any, source: str = "inline") -> PolicySet:
        """Validate raw policy data and build an immutable PolicySet."""
        if not isinstance(data, dict):
            raise ConfigurationError(f"Policy in {source} must be a mapping")

        envs_data = data.get("environments")
        if not isinstance(envs_data, dict) or not envs_data:
            raise ConfigurationError(f"Policy in {source} defines no environments")

        environments = []
        for name, env_data in envs_data.items():
            environments.append(self._parse_environment(str(name), env_data or {}))

        team_rules = tuple(
            self._parse_team_rule(item) for item in data.get("team_rules") or []
        )

        app_pattern = data.get("app_pattern", PolicySet.app_pattern)
        self._compile(app_pattern, "app_pattern")
        if re.compile(app_pattern).groups < 1:
            raise ConfigurationError("app_pattern must contain a capture group")

        return PolicySet(
            environments=tuple(environments),
            team_rules=team_rules,
            app_pattern=app_pattern,
            source=source,
        )

    def _parse_environment(self, name: str, data: dict[str, Any]) -> EnvironmentPolicy:
        environment = ENVIRONMENT_MAP.get(name.lower())
        if environment is None:
            raise ConfigurationError(
                f"Unknown environment {name!r} in policy; "
                f"expected one of {', '.join(ENVIRONMENT_MAP)}"
            )

        tags = data.get("required_tags") or {}
        if not isinstance(tags, dict):
            raise ConfigurationError(f"required_tags for {name} must be a mapping")
        required_tags = tuple((str(k), str(v)) for k, v in tags.items())

        ports = []
        for port in data.get("allowed_ports") or []:
            try:
                value = int(port)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"Invalid port {port!r} for {name}") from None
            if not 1 <= value <= 65535:
                raise ConfigurationError(f"Port {value} for {name} is out of range")
            ports.append(value)

        safe_source = str(data.get("safe_source", ""))
        if safe_source:
            try:
                safe_source = str(ipaddress.ip_network(safe_source, strict=False))
            except ValueError:
                raise ConfigurationError(
                    f"Invalid safe_source CIDR {safe_source!r} for {name}") from None

        return EnvironmentPolicy(
            environment=environment,
            required_tags=required_tags,
            allowed_ports=frozenset(ports),
            safe_source=safe_source,
        )

    def _parse_team_rule(self, data: Any) -> TeamRule:
        if not isinstance(data, dict) or "pattern" not in data or "team" not in data:
            raise ConfigurationError(
                f"Team rule must have 'pattern' and 'team': {data!r}")
        self._compile(data["pattern"], "team rule")
        return TeamRule(pattern=str(data["pattern"]), team=str(data["team"]))

    @staticmethod
    def _compile(pattern: Any, what: str) -> None:
        try:
            re.compile(str(pattern))
        except re.error as e:
            raise ConfigurationError(f"Invalid {what} regex {pattern!r}: {e}") from e
