# ============================================================================
# HEALTH ROUTER
# ============================================================================
# STATUS: Infrastructure - FastAPI probe endpoints
# PURPOSE: Expose probe flags and metrics over HTTP
# CREATED: 17 OCT 2026
# ============================================================================
"""
Health Router

Endpoints:
    GET /health  - "true"/"false": runtime and cleanup steps are working
                   200 if healthy, 503 otherwise.

    GET /status  - "true"/"false": the last pull/push transaction succeeded
                   200 if it did, 400 otherwise.

    GET /metrics - Prometheus text exposition.

    GET /livez   - Process is up and serving (always 200).

    GET /probe   - Probe loop statistics as JSON.

Handlers only read the latest ProbeFlags snapshot; they never wait on
the probe loop.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Response
from fastapi.responses import PlainTextResponse

from core.observability import ProbeMetrics
from prober.loop import ProbeLoop
from prober.state import ProbeState
from __version__ import __version__, BUILD_DATE, SERVICE_NAME

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["Health"])

# Set by the application lifespan
_state: Optional[ProbeState] = None
_metrics: Optional[ProbeMetrics] = None
_loop: Optional[ProbeLoop] = None


def set_probe(
    state: ProbeState,
    metrics: ProbeMetrics,
    loop: Optional[ProbeLoop] = None,
) -> None:
    """Set the probe components read by the endpoints."""
    global _state, _metrics, _loop
    _state = state
    _metrics = metrics
    _loop = loop


def _require_state() -> ProbeState:
    if _state is None:
        raise HTTPException(status_code=503, detail="Probe not initialized")
    return _state


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


@health_router.get("/health", response_class=PlainTextResponse)
async def health():
    """Runtime connection and cleanup health."""
    healthy = _require_state().healthy
    return PlainTextResponse(_bool_text(healthy), status_code=200 if healthy else 503)


@health_router.get("/status", response_class=PlainTextResponse)
async def status():
    """Outcome of the most recent pull/push transaction."""
    ok = _require_state().status
    return PlainTextResponse(_bool_text(ok), status_code=200 if ok else 400)


@health_router.get("/metrics")
async def metrics():
    """Prometheus scrape endpoint."""
    if _metrics is None:
        raise HTTPException(status_code=503, detail="Metrics not initialized")
    return Response(content=_metrics.render(), media_type=_metrics.content_type)


@health_router.get("/livez")
async def liveness_probe():
    """Instant check with no dependencies; confirms the process is responsive."""
    return {"status": "alive", "service": SERVICE_NAME, "version": __version__, "build_date": BUILD_DATE}


@health_router.get("/probe")
async def probe_stats():
    """Probe loop statistics for operators."""
    if _loop is None:
        return {"flags": _require_state().snapshot.to_dict()}
    return _loop.stats


__all__ = [
    "health_router",
    "set_probe",
]
