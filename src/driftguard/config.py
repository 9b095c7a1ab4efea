"""Run parameter resolution and validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from driftguard.models import RunMode, TargetScope

logger = logging.getLogger(__name__)

ENVIRONMENT_CHOICES = [s.value for s in TargetScope]
MODE_CHOICES = [m.value for m in RunMode]


class ConfigurationError(ValueError):
    """Raised when run parameters or a policy file are invalid."""


@dataclass(frozen=True)
class RunConfig:
    """Validated parameters for a single run."""

    target: TargetScope
    mode: RunMode

    @classmethod
    def from_values(cls, environment: str | None, mode: str | None) -> RunConfig:
        """Build a RunConfig from raw strings (CLI, API or env vars).

        Values are matched case-insensitively against the fixed choices.
        Anything else is rejected rather than coerced.
        """
        env_value = (environment or "").strip().lower()
        mode_value = (mode or "").strip().lower()

        try:
            target = TargetScope(env_value)
        except ValueError:
            raise ConfigurationError(
                f"Invalid environment {environment!r}; "
                f"expected one of {', '.join(ENVIRONMENT_CHOICES)}"
            ) from None

        try:
            run_mode = RunMode(mode_value)
        except ValueError:
            raise ConfigurationError(
                f"Invalid mode {mode!r}; expected one of {', '.join(MODE_CHOICES)}"
            ) from None

        logger.debug("Run config resolved: target=%s mode=%s",
                     target.value, run_mode.value)
        return cls(target=target, mode=run_mode)

    @property
    def is_remediate(self) -> bool:
        return self.mode == RunMode.REMEDIATE
