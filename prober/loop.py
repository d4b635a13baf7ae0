# ============================================================================
# PROBE LOOP
# ============================================================================
# STATUS: Core - Self-pacing probe loop
# PURPOSE: Drive probe iterations forever, own pacing and the probe flags
# CREATED: 17 OCT 2026
# ============================================================================
"""
Probe Loop

Runs as a background task in the FastAPI application.

Each iteration:
1. Reset status to true
2. Run the pipeline steps in order (see prober.steps)
3. Classify the outcome:
   - success:      success counter, pull/push latency, next sleep 2 minutes
   - pull/push failure: status=false, failure counter, next sleep 30 seconds,
                   rest of the iteration skipped
   - any other failure: healthy=false, loop halts for good

The first iteration starts immediately; every later one starts after the
sleep chosen by the previous iteration. The loop is the only writer of
ProbeState.

Blocking runtime calls run in a worker thread so the HTTP server stays
responsive while a step is in flight.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from core.config import SUCCESS_INTERVAL_SEC, FAILURE_INTERVAL_SEC
from core.contracts import FailureKind, IterationOutcome, PipelineStep
from core.logging import get_logger, log_context
from core.observability import ProbeMetrics
from infrastructure.runtime import RuntimeClient, RuntimeOperationError
from prober.errors import ProbeStepError
from prober.state import ProbeState
from prober.steps import ProbePipeline

logger = get_logger(__name__)

STEP_MESSAGES: Dict[PipelineStep, str] = {
    PipelineStep.CONNECT: "Connecting to container runtime",
    PipelineStep.CLEAR_CONTAINERS: "Clearing all containers",
    PipelineStep.CLEAR_IMAGES: "Clearing all images",
    PipelineStep.PULL: "Pulling test image",
    PipelineStep.DELETE_TOP_LAYER: "Deleting top layer",
    PipelineStep.CREATE_TOP_LAYER: "Creating new top layer",
    PipelineStep.PUSH: "Pushing test image",
}

TRANSACTION_ERROR_PREFIX: Dict[PipelineStep, str] = {
    PipelineStep.PULL: "Pull Error",
    PipelineStep.PUSH: "Push Error",
}


class ProbeLoop:
    """
    Self-pacing probe loop.

    Lifecycle:
        loop = ProbeLoop(pipeline, state, metrics)
        await loop.start()      # background task, first iteration immediately
        ...
        await loop.stop()       # signal, wait for the current iteration

    For tests, `await loop.run(max_iterations=n)` runs inline and
    `loop.run_iteration()` runs exactly one iteration synchronously.
    """

    def __init__(
        self,
        pipeline: ProbePipeline,
        state: ProbeState,
        metrics: ProbeMetrics,
        success_interval: float = SUCCESS_INTERVAL_SEC,
        failure_interval: float = FAILURE_INTERVAL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the probe loop.

        Args:
            pipeline: Step implementations
            state: Flag cell this loop publishes to
            metrics: Prometheus collectors
            success_interval: Seconds to sleep after a successful iteration
            failure_interval: Seconds to sleep after a pull/push failure
            clock: Monotonic clock used for pull/push latency
        """
        self.pipeline = pipeline
        self.state = state
        self.metrics = metrics
        self.success_interval = success_interval
        self.failure_interval = failure_interval
        self._clock = clock

        # Pacing
        self._next_sleep = success_interval

        # Lifecycle
        self._running = False
        self._halted = False
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        # Stats
        self._started_at: Optional[datetime] = None
        self._iterations = 0
        self._successes = 0
        self._failures = 0
        self._last_outcome: Optional[IterationOutcome] = None
        self._last_step: Optional[PipelineStep] = None
        self._last_error: Optional[str] = None
        self._last_iteration_at: Optional[datetime] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Launch the loop as a background task."""
        if self._task is not None and not self._task.done():
            logger.warning("Probe loop already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self.run(), name="probe-loop")

    async def stop(self, timeout: float = 10.0) -> None:
        """
        Signal the loop to stop and wait for it.

        An in-flight iteration is given `timeout` seconds to finish before
        the task is cancelled. A cancelled iteration's runtime call still
        completes in its worker thread; nothing is rolled back.
        """
        logger.info("Stopping probe loop")
        self._stop_event.set()

        if self._task is None:
            return

        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Probe iteration still running after {timeout}s, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info(
            f"Probe loop stopped (iterations={self._iterations}, "
            f"successes={self._successes}, failures={self._failures}, "
            f"halted={self._halted})"
        )

    async def run(self, max_iterations: Optional[int] = None) -> None:
        """
        Run iterations until stopped, halted or `max_iterations` is reached.
        """
        self._running = True
        self._started_at = datetime.now(timezone.utc)
        logger.info(
            f"Starting probe loop (success_interval={self.success_interval}s, "
            f"failure_interval={self.failure_interval}s)"
        )

        completed = 0
        try:
            while not self._stop_event.is_set():
                if completed > 0:
                    logger.info(f"Sleeping for {self._next_sleep}s")
                    if await self._wait_for_stop(self._next_sleep):
                        break

                outcome = await asyncio.to_thread(self.run_iteration)
                completed += 1

                if outcome.is_terminal():
                    logger.error("Probe loop halted after fatal failure")
                    break

                if max_iterations is not None and completed >= max_iterations:
                    break
        finally:
            self._running = False

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds; True if stop was requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    # =========================================================================
    # ITERATION
    # =========================================================================

    def run_iteration(self) -> IterationOutcome:
        """
        Run one full pipeline pass and publish its outcome.

        Blocking; called from a worker thread by run().
        """
        self._iterations += 1
        with log_context(iteration=self._iterations):
            logger.info("Starting test")
            self.state.publish(status=True)
            return self._run_pipeline()

    def _run_pipeline(self) -> IterationOutcome:
        runtime: Optional[RuntimeClient] = None
        try:
            runtime = self._step(PipelineStep.CONNECT, self.pipeline.connect)
            self._step(PipelineStep.CLEAR_CONTAINERS, self.pipeline.clear_containers, runtime)
            self._step(PipelineStep.CLEAR_IMAGES, self.pipeline.clear_images, runtime)

            pull_started = self._clock()
            self._step(PipelineStep.PULL, self.pipeline.pull, runtime)
            self.metrics.observe_pull(self._clock() - pull_started)

            self._step(PipelineStep.DELETE_TOP_LAYER, self.pipeline.delete_top_layer, runtime)
            self._step(PipelineStep.CREATE_TOP_LAYER, self.pipeline.create_top_layer, runtime)

            push_started = self._clock()
            self._step(PipelineStep.PUSH, self.pipeline.push, runtime)
            self.metrics.observe_push(self._clock() - push_started)

        except ProbeStepError as e:
            if e.kind is FailureKind.TRANSACTIONAL:
                prefix = TRANSACTION_ERROR_PREFIX.get(e.step, "Transaction Error")
                logger.error(f"{prefix}: {e.message}")
                self.state.publish(status=False)
                self.metrics.record_failure()
                return self._finish(IterationOutcome.TRANSACTION_FAILED, str(e))

            logger.error(f"Fatal failure in {e.step.value}: {e.message}")
            self.state.publish(healthy=False)
            return self._finish(IterationOutcome.FATAL, str(e))

        except Exception as e:
            logger.exception(f"Unexpected error in probe iteration: {e}")
            self.state.publish(healthy=False)
            return self._finish(IterationOutcome.FATAL, f"{type(e).__name__}: {e}")

        finally:
            if runtime is not None:
                self._close(runtime)

        logger.info("Test successful")
        self.metrics.record_success()
        return self._finish(IterationOutcome.SUCCEEDED)

    def _step(self, step: PipelineStep, func: Callable[..., Any], *args: Any) -> Any:
        with log_context(step=step.value):
            logger.info(STEP_MESSAGES[step])
            self._last_step = step
            return func(*args)

    def _finish(self, outcome: IterationOutcome, error: Optional[str] = None) -> IterationOutcome:
        """Record the outcome and choose the next sleep."""
        self._last_outcome = outcome
        self._last_error = error
        self._last_iteration_at = datetime.now(timezone.utc)

        if outcome is IterationOutcome.SUCCEEDED:
            self._successes += 1
            self._next_sleep = self.success_interval
        elif outcome is IterationOutcome.TRANSACTION_FAILED:
            self._failures += 1
            self._next_sleep = self.failure_interval
        else:
            self._halted = True

        return outcome

    @staticmethod
    def _close(runtime: RuntimeClient) -> None:
        try:
            runtime.close()
        except RuntimeOperationError as e:
            logger.warning(f"Failed to close runtime connection: {e}")

    # =========================================================================
    # STATS AND PROPERTIES
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_halted(self) -> bool:
        """True once a fatal failure has stopped the loop."""
        return self._halted

    @property
    def next_sleep(self) -> float:
        """Seconds the loop will sleep before its next iteration."""
        return self._next_sleep

    @property
    def stats(self) -> Dict[str, Any]:
        """Get probe loop statistics."""
        uptime_seconds = None
        if self._started_at:
            uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()

        return {
            "running": self._running,
            "halted": self._halted,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": uptime_seconds,
            "iterations": self._iterations,
            "successes": self._successes,
            "failures": self._failures,
            "last_outcome": self._last_outcome.value if self._last_outcome else None,
            "last_step": self._last_step.value if self._last_step else None,
            "last_error": self._last_error,
            "last_iteration_at": self._last_iteration_at.isoformat() if self._last_iteration_at else None,
            "next_sleep_seconds": self._next_sleep,
            "constrained": self.pipeline.constrained,
            "flags": self.state.snapshot.to_dict(),
        }


__all__ = [
    "ProbeLoop",
    "STEP_MESSAGES",
]
