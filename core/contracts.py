# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# STATUS: Foundation - Core enums for the probe pipeline
# PURPOSE: Name the pipeline steps, failure classes and iteration outcomes
# CREATED: 17 OCT 2026
# EXPORTS: PipelineStep, FailureKind, IterationOutcome
# ============================================================================
"""
Base contracts for the registry monitor.

These enums cross the boundary between the probe pipeline, the loop that
drives it, the log stream and the operator-facing /probe endpoint.
"""

from enum import Enum


# ============================================================================
# PIPELINE STEPS
# ============================================================================

class PipelineStep(str, Enum):
    """
    Steps of one probe iteration, in execution order.

    Every iteration runs these strictly in sequence against a single
    runtime connection:
        CONNECT -> CLEAR_CONTAINERS -> CLEAR_IMAGES -> PULL
                -> DELETE_TOP_LAYER -> CREATE_TOP_LAYER -> PUSH
    """
    CONNECT = "connect"
    CLEAR_CONTAINERS = "clear_containers"
    CLEAR_IMAGES = "clear_images"
    PULL = "pull"
    DELETE_TOP_LAYER = "delete_top_layer"
    CREATE_TOP_LAYER = "create_top_layer"
    PUSH = "push"

    @property
    def is_transactional(self) -> bool:
        """Steps that talk to the registry and may be retried."""
        return self in (PipelineStep.PULL, PipelineStep.PUSH)


# ============================================================================
# FAILURE CLASSES
# ============================================================================

class FailureKind(str, Enum):
    """
    How a failed step affects the loop.

    FATAL stops probing for the lifetime of the process and reports
    unhealthy. TRANSACTIONAL records a failed transaction and retries on
    the next iteration after a short backoff.
    """
    FATAL = "fatal"
    TRANSACTIONAL = "transactional"


# ============================================================================
# ITERATION OUTCOMES
# ============================================================================

class IterationOutcome(str, Enum):
    """Result of one full pass through the pipeline."""
    SUCCEEDED = "succeeded"
    TRANSACTION_FAILED = "transaction_failed"
    FATAL = "fatal"

    def is_terminal(self) -> bool:
        """Check if the loop must halt after this outcome."""
        return self is IterationOutcome.FATAL


__all__ = [
    "PipelineStep",
    "FailureKind",
    "IterationOutcome",
]
