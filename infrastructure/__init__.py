# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Infrastructure - Container runtime access
# PURPOSE: Client for the local container runtime
# ============================================================================
"""
Infrastructure module for the registry monitor.

Provides:
- RuntimeClient: Docker Engine API operations used by the probe
- RuntimeOperationError: any failed runtime call

Usage:
    from infrastructure import RuntimeClient

    runtime = RuntimeClient.connect(config.runtime)
    images = runtime.list_images()
"""

from infrastructure.runtime import (
    RuntimeClient,
    RuntimeOperationError,
    build_tls_config,
    resolve_base_url,
)

__all__ = [
    "RuntimeClient",
    "RuntimeOperationError",
    "build_tls_config",
    "resolve_base_url",
]
