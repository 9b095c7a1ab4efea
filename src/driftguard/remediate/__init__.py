"""Applying findings in remediate mode."""

from driftguard.remediate.engine import RemediationEngine, format_plan_text

__all__ = ["RemediationEngine", "format_plan_text"]
