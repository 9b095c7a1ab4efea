"""Shared test fixtures."""

import pytest

from driftguard.config import RunConfig
from driftguard.models import NetworkSecurityGroup, SecurityRule, TargetObject
from driftguard.policy.loader import PolicyLoader
from driftguard.providers.memory import InMemoryProvider


def make_resources():
    return [
        TargetObject(name="vm-app1", scope="rg-app1-dev", resource_id="res-1"),
        TargetObject(name="st-logs", scope="rg-storage-prod", resource_id="res-2",
                     tags={"Environment": "prod"}),
    ]


def make_nsgs():
    return [
        NetworkSecurityGroup(name="nsg-web-dev", scope="rg-app1-dev", rules=[
            SecurityRule(name="allow-ssh", priority=100, protocol="Tcp",
                         source_address_prefix="*", destination_ports=["22"]),
            SecurityRule(name="allow-rdp", priority=110, protocol="Tcp",
                         source_address_prefix="10.10.0.0/16",
                         destination_ports=["3389"]),
        ]),
        NetworkSecurityGroup(name="nsg-sql-prod", scope="rg-data-prod", rules=[
            SecurityRule(name="allow-web", priority=200, protocol="Tcp",
                         source_address_prefix="10.0.0.0/24",
                         destination_ports=["80", "443"]),
            SecurityRule(name="deny-all", priority=4000, access="Deny",
                         destination_ports=["*"]),
        ]),
    ]


@pytest.fixture
def policy():
    return PolicyLoader().load_builtin()


@pytest.fixture
def resources():
    return make_resources()


@pytest.fixture
def nsgs():
    return make_nsgs()


@pytest.fixture
def provider():
    return InMemoryProvider(resources=make_resources(),
                            network_security_groups=make_nsgs())


@pytest.fixture
def audit_all():
    return RunConfig.from_values("all", "audit")


@pytest.fixture
def remediate_all():
    return RunConfig.from_values("all", "remediate")
