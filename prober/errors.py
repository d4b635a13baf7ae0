# ============================================================================
# PROBE STEP ERRORS
# ============================================================================
# STATUS: Core - Failure classification
# PURPOSE: Carry a failed step and its failure class up to the probe loop
# CREATED: 17 OCT 2026
# ============================================================================
"""
Probe step errors.

Pipeline steps raise one of the two concrete classes; only the probe loop
catches them.
"""

from core.contracts import FailureKind, PipelineStep


class ProbeStepError(Exception):
    """A pipeline step failed."""

    kind: FailureKind = FailureKind.FATAL

    def __init__(self, step: PipelineStep, message: str):
        self.step = step
        self.message = message
        super().__init__(f"{step.value}: {message}")


class FatalStepError(ProbeStepError):
    """Runtime-side failure; probing stops for the lifetime of the process."""

    kind = FailureKind.FATAL


class TransactionalStepError(ProbeStepError):
    """Pull or push against the registry failed; retried next iteration."""

    kind = FailureKind.TRANSACTIONAL


def error_for_step(step: PipelineStep, message: str) -> ProbeStepError:
    """Build the error class matching how a failure of this step is treated."""
    if step.is_transactional:
        return TransactionalStepError(step, message)
    return FatalStepError(step, message)


__all__ = [
    "ProbeStepError",
    "FatalStepError",
    "TransactionalStepError",
    "error_for_step",
]
