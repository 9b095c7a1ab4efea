"""Findings log and export formats."""

from driftguard.report.generator import ReportGenerator

__all__ = ["ReportGenerator"]
