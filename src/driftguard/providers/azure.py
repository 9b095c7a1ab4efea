"""Azure provider backed by the Azure management SDKs."""

from __future__ import annotations

import logging
import re
from typing import Any

from azure.core.exceptions import AzureError
from azure.identity import DefaultAzureCredential
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.network.models import SecurityRule as AzureSecurityRule
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import Tags, TagsPatchResource

from driftguard.models import NetworkSecurityGroup, SecurityRule, TargetObject
from driftguard.providers.base import MutationError

logger = logging.getLogger(__name__)

_RESOURCE_GROUP_RE = re.compile(r"/resourceGroups/([^/]+)", re.IGNORECASE)


def resource_group_from_id(resource_id: str) -> str:
    """Extract the resource group name from an ARM resource id."""
    match = _RESOURCE_GROUP_RE.search(resource_id or "")
    return match.group(1) if match else ""


def to_security_rule(rule: Any) -> SecurityRule:
    """Convert an SDK SecurityRule into the DriftGuard model."""
    ports: list[str] = []
    if rule.destination_port_range:
        ports.append(str(rule.destination_port_range))
    ports.extend(str(p) for p in rule.destination_port_ranges or [])

    source = rule.source_address_prefix
    if not source and rule.source_address_prefixes:
        source = ",".join(rule.source_address_prefixes)

    return SecurityRule(
        name=rule.name,
        priority=rule.priority,
        direction=str(rule.direction or ""),
        access=str(rule.access or ""),
        protocol=str(rule.protocol or "*"),
        source_address_prefix=source or "",
        source_port_range=rule.source_port_range or "*",
        destination_address_prefix=rule.destination_address_prefix or "*",
        destination_ports=ports,
        description=rule.description or "",
    )


def to_azure_rule(rule: SecurityRule) -> AzureSecurityRule:
    """Convert a DriftGuard SecurityRule into the SDK model."""
    single = len(rule.destination_ports) == 1
    return AzureSecurityRule(
        name=rule.name,
        priority=rule.priority,
        direction=rule.direction,
        access=rule.access,
        protocol=rule.protocol,
        source_address_prefix=rule.source_address_prefix,
        source_port_range=rule.source_port_range,
        destination_address_prefix=rule.destination_address_prefix,
        destination_port_range=rule.destination_ports[0] if single else None,
        destination_port_ranges=None if single else list(rule.destination_ports),
        description=rule.description or None,
    )


class AzureProvider:
    """Lists and mutates resources and NSGs in one Azure subscription."""

    def __init__(self, subscription_id: str, credential: Any | None = None,
                 resource_client: Any | None = None,
                 network_client: Any | None = None) -> None:
        if not subscription_id:
            raise ValueError("An Azure subscription id is required")
        self.subscription_id = subscription_id
        self.credential = credential or DefaultAzureCredential()
        self.resource_client = resource_client or ResourceManagementClient(
            self.credential, subscription_id)
        self.network_client = network_client or NetworkManagementClient(
            self.credential, subscription_id)

    def list_resources(self) -> list[TargetObject]:
        resources = []
        for res in self.resource_client.resources.list():
            resources.append(TargetObject(
                name=res.name,
                scope=resource_group_from_id(res.id),
                resource_id=res.id,
                resource_type=res.type or "",
                location=res.location or "",
                tags=dict(res.tags or {}),
            ))
        logger.info("Found %d resources in subscription %s",
                    len(resources), self.subscription_id)
        return resources

    def list_network_security_groups(self) -> list[NetworkSecurityGroup]:
        nsgs = []
        for nsg in self.network_client.network_security_groups.list_all():
            nsgs.append(NetworkSecurityGroup(
                name=nsg.name,
                scope=resource_group_from_id(nsg.id),
                resource_id=nsg.id,
                location=nsg.location or "",
                rules=[to_security_rule(r) for r in nsg.security_rules or []],
            ))
        logger.info("Found %d NSGs in subscription %s",
                    len(nsgs), self.subscription_id)
        return nsgs

    def set_resource_tags(self, resource_id: str, tags: dict[str, str]) -> None:
        patch = TagsPatchResource(operation="Merge", properties=Tags(tags=dict(tags)))
        try:
            self.resource_client.tags.begin_update_at_scope(resource_id, patch).result()
        except AzureError as e:
            raise MutationError(f"Tag update failed for {resource_id}: {e}") from e
        logger.info("Tags merged on %s: %s", resource_id, tags)

    def replace_security_rule(self, nsg: NetworkSecurityGroup, old_rule_name: str,
                              new_rule: SecurityRule) -> None:
        """Delete then re-add a rule at the same priority.

        Priorities are unique per direction, so the new rule can only be
        added once the old one is gone. If the add fails, the original rule
        is re-created before MutationError is raised.
        """
        rules = self.network_client.security_rules
        group = nsg.scope
        try:
            original = rules.get(group, nsg.name, old_rule_name)
            rules.begin_delete(group, nsg.name, old_rule_name).result()
        except AzureError as e:
            raise MutationError(
                f"Could not remove rule {nsg.name}/{old_rule_name}: {e}") from e

        try:
            rules.begin_create_or_update(
                group, nsg.name, new_rule.name, to_azure_rule(new_rule)).result()
        except AzureError as e:
            logger.warning("Add of %s/%s failed, restoring original rule",
                           nsg.name, new_rule.name)
            try:
                rules.begin_create_or_update(
                    group, nsg.name, old_rule_name, original).result()
            except AzureError as rollback_error:
                raise MutationError(
                    f"Replacement of {nsg.name}/{old_rule_name} failed ({e}) and "
                    f"rollback failed ({rollback_error}); rule is missing"
                ) from e
            raise MutationError(
                f"Replacement of {nsg.name}/{old_rule_name} failed; "
                f"original rule restored: {e}"
            ) from e
        logger.info("Rule %s/%s replaced", nsg.name, old_rule_name)
