"""Compliance evaluation: classification, tag and NSG checks."""

from driftguard.engine.classifier import classify_environment, infer_app, infer_team
from driftguard.engine.nsg import NsgEvaluator
from driftguard.engine.tags import TagEvaluator

__all__ = [
    "NsgEvaluator",
    "TagEvaluator",
    "classify_environment",
    "infer_app",
    "infer_team",
]
