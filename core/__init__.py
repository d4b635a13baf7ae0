# ============================================================================
# CORE MODULE
# ============================================================================
# STATUS: Core module initialization
# PURPOSE: Export core contracts and models
# ============================================================================

from core.contracts import PipelineStep, FailureKind, IterationOutcome
from core.models import ProbeFlags, RegistryCredentials, RegistryTransaction

__all__ = [
    # Enums
    "PipelineStep",
    "FailureKind",
    "IterationOutcome",
    # Models
    "ProbeFlags",
    "RegistryCredentials",
    "RegistryTransaction",
]
