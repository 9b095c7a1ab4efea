"""Cloud providers: the seam between the engine and the control plane."""

from driftguard.providers.base import CloudProvider, MutationError
from driftguard.providers.memory import InMemoryProvider

__all__ = ["CloudProvider", "InMemoryProvider", "MutationError"]
