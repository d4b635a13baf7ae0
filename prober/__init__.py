# ============================================================================
# PROBER MODULE
# ============================================================================
# STATUS: Core - Registry probe
# PURPOSE: Probe loop, pipeline steps and shared probe state
# CREATED: 17 OCT 2026
# ============================================================================
"""
Prober module.

Provides:
- ProbeLoop: background driver of probe iterations
- ProbePipeline: the pull / delete / create / push steps
- ProbeState: flag cell read by /health and /status

Usage:
    from prober import ProbeLoop, ProbePipeline, ProbeState

    pipeline = ProbePipeline(config.transaction(), config.runtime)
    loop = ProbeLoop(pipeline, ProbeState(), metrics)
    await loop.start()
"""

from prober.errors import ProbeStepError, FatalStepError, TransactionalStepError
from prober.state import ProbeState
from prober.steps import ImageCleaner, ProbePipeline
from prober.loop import ProbeLoop

__all__ = [
    "ProbeStepError",
    "FatalStepError",
    "TransactionalStepError",
    "ProbeState",
    "ImageCleaner",
    "ProbePipeline",
    "ProbeLoop",
]
