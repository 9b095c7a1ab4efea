"""Run orchestration."""

from driftguard.check.checker import ComplianceChecker

__all__ = ["ComplianceChecker"]
