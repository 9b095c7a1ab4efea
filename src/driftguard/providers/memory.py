"""In-memory provider used by the demo, the API and tests."""

from __future__ import annotations

import copy
import logging
from typing import Any

from driftguard.models import NetworkSecurityGroup, SecurityRule, TargetObject
from driftguard.providers.base import MutationError

logger = logging.getLogger(__name__)


class InMemoryProvider:
    """Holds resources and NSGs in dicts and records every mutating call.

    Objects are keyed by resource id, or by ``scope/name`` when they have
    none, so same-named objects in different scopes stay distinct.

    ``fail_tags_for`` and ``fail_rules_for`` name resource ids or
    ``nsg/rule`` pairs whose mutations should fail. ``fail_add_for`` makes
    only the add half of a rule replacement fail, which exercises rollback.
    """

    def __init__(self, resources: list[TargetObject] | None = None,
                 network_security_groups: list[NetworkSecurityGroup] | None = None,
                 fail_tags_for: set[str] | None = None,
                 fail_rules_for: set[str] | None = None,
                 fail_add_for: set[str] | None = None) -> None:
        self._resources: dict[str, TargetObject] = {
            r.identifier: r for r in resources or []
        }
        self._nsgs: dict[str, NetworkSecurityGroup] = {
            n.identifier: n for n in network_security_groups or []
        }
        self.fail_tags_for = set(fail_tags_for or ())
        self.fail_rules_for = set(fail_rules_for or ())
        self.fail_add_for = set(fail_add_for or ())
        self.calls: list[dict[str, Any]] = []

    def list_resources(self) -> list[TargetObject]:
        return [copy.deepcopy(r) for r in self._resources.values()]

    def list_network_security_groups(self) -> list[NetworkSecurityGroup]:
        return [copy.deepcopy(n) for n in self._nsgs.values()]

    def get_resource(self, resource_id: str) -> TargetObject | None:
        return self._resources.get(resource_id)

    def get_network_security_group(self, name: str,
                                   scope: str | None = None) -> NetworkSecurityGroup | None:
        for nsg in self._nsgs.values():
            if nsg.name == name and scope in (None, nsg.scope):
                return nsg
        return None

    def set_resource_tags(self, resource_id: str, tags: dict[str, str]) -> None:
        self.calls.append({"op": "set_resource_tags", "resource_id": resource_id,
                           "tags": dict(tags)})
        if resource_id in self.fail_tags_for:
            raise MutationError(f"Tag update rejected for {resource_id}")
        resource = self._resources.get(resource_id)
        if resource is None:
            raise MutationError(f"Resource not found: {resource_id}")
        resource.tags.update(tags)
        logger.debug("Tags merged on %s: %s", resource_id, tags)

    def replace_security_rule(self, nsg: NetworkSecurityGroup, old_rule_name: str,
                              new_rule: SecurityRule) -> None:
        key = f"{nsg.name}/{old_rule_name}"
        self.calls.append({"op": "replace_security_rule", "nsg": nsg.name,
                           "rule": old_rule_name, "new_rule": copy.deepcopy(new_rule)})
        if key in self.fail_rules_for:
            raise MutationError(f"Rule replacement rejected for {key}")

        stored = self._nsgs.get(nsg.identifier)
        if stored is None:
            raise MutationError(f"NSG not found: {nsg.name}")
        original = stored.get_rule(old_rule_name)
        if original is None:
            raise MutationError(f"Rule not found: {key}")

        index = stored.rules.index(original)
        stored.rules.remove(original)
        if key in self.fail_add_for:
            stored.rules.insert(index, original)
            raise MutationError(
                f"Failed to add replacement for {key}; original rule restored")
        stored.rules.insert(index, copy.deepcopy(new_rule))
        logger.debug("Rule %s replaced", key)

    @property
    def mutation_count(self) -> int:
        return len(self.calls)
