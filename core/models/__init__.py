# ============================================================================
# MODELS MODULE
# ============================================================================
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# ============================================================================
"""
Models Module - Central Export Point

All Pydantic models for the registry monitor.
"""

from core.models.probe import (
    LATEST_TAG,
    ProbeFlags,
    RegistryCredentials,
    RegistryTransaction,
)

__all__ = [
    "LATEST_TAG",
    "ProbeFlags",
    "RegistryCredentials",
    "RegistryTransaction",
]
