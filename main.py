# ============================================================================
# REGISTRY MONITOR - MAIN APPLICATION
# ============================================================================
# STATUS: Core - FastAPI application entry point
# PURPOSE: Serve probe endpoints and run the probe loop in the background
# CREATED: 17 OCT 2026
# ============================================================================
"""
Registry Monitor Main Application

FastAPI application that:
1. Runs the probe loop in the background (first iteration immediately)
2. Serves /health, /status and /metrics from the loop's shared state

Usage:
    python main.py --username bot --password secret \\
        --registry-host registry.example.com --repository acme/probe \\
        --base-layer-id 4a4f0b0c

    # Or with environment variables
    REGISTRY_MONITOR_USERNAME=bot ... python main.py
"""

import sys
from contextlib import asynccontextmanager
from typing import Optional, Sequence

from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE, SERVICE_NAME
from core.config import ConfigError, MonitorConfig
from core.logging import configure_logging, get_logger
from core.observability import ProbeMetrics
from health import health_router, set_probe
from prober import ProbeLoop, ProbePipeline, ProbeState

logger = get_logger(__name__)


def create_app(
    config: MonitorConfig,
    pipeline: Optional[ProbePipeline] = None,
    metrics: Optional[ProbeMetrics] = None,
) -> FastAPI:
    """
    Build the application for a validated configuration.

    Args:
        config: Startup configuration
        pipeline: Optional pipeline override (defaults to the real runtime)
        metrics: Optional metrics override (defaults to a fresh registry)
    """
    state = ProbeState()
    metrics = metrics or ProbeMetrics(namespace=config.prometheus_namespace)
    pipeline = pipeline or ProbePipeline(
        config.transaction(),
        config.runtime,
        monitor_container=config.monitor_container,
    )
    probe_loop = ProbeLoop(
        pipeline,
        state,
        metrics,
        success_interval=config.success_interval,
        failure_interval=config.failure_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the probe loop on startup, stop it on shutdown."""
        logger.info(f"Starting {SERVICE_NAME} v{__version__} (Build {BUILD_DATE})")
        logger.info(f"Configuration: {config.to_safe_dict()}")

        set_probe(state, metrics, probe_loop)
        await probe_loop.start()
        logger.info("Probe loop started")

        yield

        logger.info(f"Shutting down {SERVICE_NAME}...")
        await probe_loop.stop()
        logger.info(f"{SERVICE_NAME} stopped")

    app = FastAPI(
        title="Registry Monitor",
        description="Synthetic pull/push prober for a container image registry",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.probe_state = state
    app.state.probe_loop = probe_loop
    app.state.metrics = metrics

    app.include_router(health_router)

    return app


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def run(argv: Optional[Sequence[str]] = None) -> None:
    """Parse configuration, configure logging and serve until killed."""
    import uvicorn

    try:
        config = MonitorConfig.load(sys.argv[1:] if argv is None else argv)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    configure_logging(level=config.logging_level, json_output=config.json_logs)

    host, port = config.bind
    logger.info(f"Listening on {config.listen}")

    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
