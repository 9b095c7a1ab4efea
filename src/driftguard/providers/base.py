"""Provider interface between the engine and a cloud control plane."""

from __future__ import annotations

from typing import Protocol

from driftguard.models import NetworkSecurityGroup, SecurityRule, TargetObject


class MutationError(RuntimeError):
    """Raised when a mutating provider call fails."""


class CloudProvider(Protocol):
    """Listing and mutating operations the engine relies on."""

    def list_resources(self) -> list[TargetObject]:
        ...

    def list_network_security_groups(self) -> list[NetworkSecurityGroup]:
        ...

    def set_resource_tags(self, resource_id: str, tags: dict[str, str]) -> None:
        """Merge ``tags`` into the resource's existing tags."""
        ...

    def replace_security_rule(self, nsg: NetworkSecurityGroup, old_rule_name: str,
                              new_rule: SecurityRule) -> None:
        """Delete ``old_rule_name`` and add ``new_rule`` in its place."""
        ...
