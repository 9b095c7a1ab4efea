"""DriftGuard CLI — Click-based command-line interface.

Commands:
  tags     Audit or remediate resource tags
  nsg      Audit or remediate inbound NSG rules
  policy   Show the effective policy
  api      Launch the REST API
  demo     Run both checks against a sample estate
"""

from __future__ import annotations

import logging

import click

from driftguard import __version__
from driftguard.config import ENVIRONMENT_CHOICES, MODE_CHOICES, ConfigurationError, RunConfig
from driftguard.models import (
    CheckType,
    ComplianceReport,
    FindingStatus,
    NetworkSecurityGroup,
    SecurityRule,
    TargetObject,
)

STATUS_COLORS = {
    FindingStatus.RECORDED: "yellow",
    FindingStatus.APPLIED: "green",
    FindingStatus.APPLY_FAILED: "red",
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def run_options(fn):
    """Options shared by the tags and nsg commands."""
    options = [
        click.option("-e", "--environment", envvar="DRIFTGUARD_ENVIRONMENT",
                     type=click.Choice(ENVIRONMENT_CHOICES, case_sensitive=False),
                     default="all", show_default=True,
                     help="Target environment"),
        click.option("-m", "--mode", envvar="DRIFTGUARD_MODE",
                     type=click.Choice(MODE_CHOICES, case_sensitive=False),
                     default="audit", show_default=True,
                     help="Audit only, or apply corrections"),
        click.option("-p", "--policy", "policy_file", type=click.Path(exists=True),
                     help="Policy YAML overriding the built-in policy"),
        click.option("--subscription-id", envvar="AZURE_SUBSCRIPTION_ID",
                     help="Azure subscription to inspect"),
        click.option("--layout", type=click.Choice(["flat", "grouped"]),
                     default="flat", show_default=True, help="Findings log layout"),
        click.option("-o", "--output", type=click.Path(), help="Write the findings log here"),
        click.option("--format", "fmt", type=click.Choice(["text", "json", "csv"]),
                     default="text", help="Output file format"),
        click.option("--yes", is_flag=True, help="Do not ask before remediating"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group()
@click.version_option(version=__version__, prog_name="DriftGuard")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """DriftGuard — tag and NSG drift audit and remediation for Azure.

    Checks resources against per-environment policy and, in remediate
    mode, applies the corrections.
    """
    _setup_logging(verbose)


@cli.command()
@run_options
def tags(**kwargs) -> None:
    """Audit or remediate resource tags."""
    _run_check(CheckType.TAGS, **kwargs)


@cli.command()
@run_options
def nsg(**kwargs) -> None:
    """Audit or remediate inbound NSG rules."""
    _run_check(CheckType.NSG, **kwargs)


def get_provider(subscription_id: str):
    """Connect to Azure for the given subscription."""
    from driftguard.providers.azure import AzureProvider

    return AzureProvider(subscription_id)


def _run_check(check_type: CheckType, environment: str, mode: str,
               policy_file: str | None, subscription_id: str | None,
               layout: str, output: str | None, fmt: str, yes: bool) -> None:
    from driftguard.check.checker import ComplianceChecker

    try:
        run = RunConfig.from_values(environment, mode)
        checker = ComplianceChecker(policy_file=policy_file)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    if not subscription_id:
        raise click.UsageError(
            "No subscription given; use --subscription-id or AZURE_SUBSCRIPTION_ID")

    if run.is_remediate and not yes:
        click.confirm(
            f"Remediate {check_type.value} in '{run.target.value}' "
            f"for subscription {subscription_id}?",
            abort=True,
        )

    provider = get_provider(subscription_id)
    report = checker.run(check_type, provider, run)
    _display_report(report, layout)
    _save_report(report, output, fmt, layout)


@cli.command()
@click.option("-p", "--policy", "policy_file", type=click.Path(exists=True),
              help="Policy YAML to show instead of the built-in policy")
def policy(policy_file: str | None) -> None:
    """Show the effective policy."""
    from driftguard.policy.loader import PolicyLoader

    try:
        loaded = PolicyLoader().load(policy_file)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    click.echo(f"Policy source: {loaded.source}")
    click.echo(f"App pattern:   {loaded.app_pattern}")
    for env_policy in loaded.environments:
        click.echo(click.style(f"\n[{env_policy.environment.value}]", bold=True))
        for key, value in env_policy.required_tags:
            click.echo(f"  tag   {key}={value}")
        ports = ", ".join(str(p) for p in sorted(env_policy.allowed_ports))
        click.echo(f"  ports {ports or '(none)'}")
        click.echo(f"  safe  {env_policy.safe_source or '(none)'}")
    click.echo(click.style("\nTeam rules (first match wins):", bold=True))
    for i, rule in enumerate(loaded.team_rules, 1):
        click.echo(f"  {i}. {rule.pattern:20s} -> {rule.team}")


@cli.command()
@click.option("-p", "--port", default=5000, help="API port")
@click.option("-h", "--host", default="127.0.0.1", help="API host")
@click.option("--policy", "policy_file", type=click.Path(exists=True),
              help="Policy YAML overriding the built-in policy")
@click.option("--debug", is_flag=True, help="Enable debug mode")
def api(port: int, host: str, policy_file: str | None, debug: bool) -> None:
    """Launch the DriftGuard REST API."""
    from driftguard.api.app import create_app
    from driftguard.check.checker import ComplianceChecker

    app = create_app(ComplianceChecker(policy_file=policy_file))
    click.echo(f"DriftGuard API: http://{host}:{port}")
    app.run(host=host, port=port, debug=debug)


@cli.command()
@click.option("-m", "--mode", type=click.Choice(MODE_CHOICES, case_sensitive=False),
              default="audit", show_default=True)
@click.option("--layout", type=click.Choice(["flat", "grouped"]), default="grouped")
def demo(mode: str, layout: str) -> None:
    """Run both checks against a built-in sample estate."""
    from driftguard.check.checker import ComplianceChecker
    from driftguard.remediate.engine import format_plan_text

    click.echo(click.style("=" * 70, fg="blue"))
    click.echo(click.style("  DriftGuard Demo — Tag and NSG Compliance", fg="blue", bold=True))
    click.echo(click.style("=" * 70, fg="blue"))

    checker = ComplianceChecker()
    provider = demo_provider()
    run = RunConfig.from_values("all", mode)

    for check_type in (CheckType.TAGS, CheckType.NSG):
        report = checker.run(check_type, provider, run)
        _display_report(report, layout)

        nsg_findings = [f for f in report.findings if f.replacement is not None]
        if nsg_findings:
            click.echo("\nSuggested Fix:")
            click.echo(click.style(format_plan_text(nsg_findings[0]), fg="green"))

    click.echo("\n" + click.style(
        "Demo complete. Run 'driftguard tags --subscription-id <id>' on your own estate.",
        fg="blue"))


def demo_provider():
    """An in-memory estate with a mix of compliant and drifted objects."""
    from driftguard.providers.memory import InMemoryProvider

    resources = [
        TargetObject(name="vm-app1-web", scope="rg-app1-dev",
                     resource_id="/subscriptions/demo/resourceGroups/rg-app1-dev/vm-app1-web"),
        TargetObject(name="stlogsprod", scope="rg-storage-prod",
                     resource_id="/subscriptions/demo/resourceGroups/rg-storage-prod/stlogsprod",
                     tags={"Environment": "prod"}),
        TargetObject(name="kv-shared", scope="rg-shared",
                     resource_id="/subscriptions/demo/resourceGroups/rg-shared/kv-shared"),
    ]
    nsgs = [
        NetworkSecurityGroup(name="nsg-web-dev", scope="rg-app1-dev", rules=[
            SecurityRule(name="allow-ssh", priority=100, protocol="Tcp",
                         source_address_prefix="*", destination_ports=["22"]),
            SecurityRule(name="allow-rdp", priority=110, protocol="Tcp",
                         source_address_prefix="10.10.0.0/16", destination_ports=["3389"]),
        ]),
        NetworkSecurityGroup(name="nsg-sql-prod", scope="rg-data-prod", rules=[
            SecurityRule(name="allow-web", priority=200, protocol="Tcp",
                         source_address_prefix="10.0.0.0/24",
                         destination_ports=["80", "443"]),
            SecurityRule(name="deny-all", priority=4000, access="Deny",
                         destination_ports=["*"]),
        ]),
    ]
    return InMemoryProvider(resources=resources, network_security_groups=nsgs)


def _display_report(report: ComplianceReport, layout: str) -> None:
    from driftguard.report.generator import ReportGenerator

    text = ReportGenerator().generate_text(report, layout=layout)
    for line in text.splitlines():
        color = None
        for status, status_color in STATUS_COLORS.items():
            if f"[{status.value.upper()}]" in line:
                color = status_color
        click.echo(click.style(line, fg=color) if color else line)

    if report.is_compliant:
        click.echo(click.style("\nNo drift detected!", fg="green"))


def _save_report(report: ComplianceReport, output: str | None,
                 fmt: str, layout: str) -> None:
    if not output:
        return
    from driftguard.report.generator import ReportGenerator

    ReportGenerator().write(report, output, fmt=fmt, layout=layout)
    click.echo(f"\nReport saved: {output}")


if __name__ == "__main__":
    cli()
