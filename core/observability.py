# ============================================================================
# OBSERVABILITY
# ============================================================================
# STATUS: Core - Prometheus metrics
# PURPOSE: Success/failure counters and pull/push latency summaries
# CREATED: 17 OCT 2026
# ============================================================================
"""
Observability

Process-wide probe metrics exposed on /metrics:

    monitor_success  counter  completed pull and push transactions
    monitor_failure  counter  failed pull or push transactions
    monitor_pull     summary  seconds spent in successful pulls
    monitor_push     summary  seconds spent in successful pushes

Metric names are prefixed with PROMETHEUS_NAMESPACE when it is set.
All metrics are append-only; nothing resets or rolls them back.

Usage:
    metrics = ProbeMetrics(namespace="quay")
    metrics.observe_pull(1.7)
    metrics.record_success()
    body = metrics.render()
"""

import logging
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Summary,
    generate_latest,
)

logger = logging.getLogger(__name__)


class ProbeMetrics:
    """
    Prometheus collectors for the probe loop.

    Owns its CollectorRegistry so each process (and each test) gets an
    isolated set of collectors. Registration conflicts raise ValueError
    at construction time.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(
        self,
        namespace: str = "",
        registry: Optional[CollectorRegistry] = None,
    ):
        self.namespace = namespace
        self.registry = registry if registry is not None else CollectorRegistry()

        self.success = Counter(
            "monitor_success",
            "The registry monitor successfully completed a pull and push operation",
            namespace=namespace,
            registry=self.registry,
        )
        self.failure = Counter(
            "monitor_failure",
            "The registry monitor failed to complete a pull and push operation",
            namespace=namespace,
            registry=self.registry,
        )
        self.pull_latency = Summary(
            "monitor_pull",
            "The time for the monitor pull operation",
            namespace=namespace,
            registry=self.registry,
        )
        self.push_latency = Summary(
            "monitor_push",
            "The time for the monitor push operation",
            namespace=namespace,
            registry=self.registry,
        )

        logger.debug(f"Registered probe metrics (namespace={namespace or '<none>'})")

    def record_success(self) -> None:
        self.success.inc()

    def record_failure(self) -> None:
        self.failure.inc()

    def observe_pull(self, seconds: float) -> None:
        self.pull_latency.observe(seconds)

    def observe_push(self, seconds: float) -> None:
        self.push_latency.observe(seconds)

    def sample(self, name: str) -> float:
        """
        Current value of a sample, e.g. "monitor_success_total".

        The namespace prefix is added automatically. Missing samples
        read as 0.0.
        """
        full_name = f"{self.namespace}_{name}" if self.namespace else name
        value = self.registry.get_sample_value(full_name)
        return value if value is not None else 0.0

    def render(self) -> bytes:
        """Text exposition of every registered metric."""
        return generate_latest(self.registry)


__all__ = [
    "ProbeMetrics",
]
