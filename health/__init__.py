# ============================================================================
# HEALTH MODULE
# ============================================================================
# STATUS: Infrastructure - HTTP probe surface
# PURPOSE: /health, /status and /metrics endpoints
# ============================================================================
"""
Health Module

Usage:
    from health import health_router, set_probe

    set_probe(state, metrics, loop)
    app.include_router(health_router)
"""

from health.router import health_router, set_probe

__all__ = [
    "health_router",
    "set_probe",
]
