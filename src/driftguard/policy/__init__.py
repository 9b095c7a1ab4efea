"""Environment policies and the YAML policy loader."""

from driftguard.policy.loader import PolicyLoader

__all__ = ["PolicyLoader"]
