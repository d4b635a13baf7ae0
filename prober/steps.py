# ============================================================================
# PROBE PIPELINE STEPS
# ============================================================================
# STATUS: Core - Registry read/write pipeline
# PURPOSE: The seven runtime/registry operations of one probe iteration
# CREATED: 17 OCT 2026
# ============================================================================
"""
Probe Pipeline

One iteration runs these steps in order against one runtime connection:

1. connect            open and verify the runtime connection
2. clear_containers   remove every container but the monitor's own
                      (skipped when running under docker)
3. clear_images       remove images one at a time until none are left
4. pull               pull <pull registry>/<repository>:latest
5. delete_top_layer   remove the image currently tagged latest
6. create_top_layer   commit a fresh container as <registry>/<repository>:latest
7. push               push the new latest tag to the monitored registry

Steps never touch the probe flags. They raise FatalStepError or
TransactionalStepError and the loop decides what that means for the
flags, metrics and pacing.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from core.config import RuntimeConfig
from core.config.settings import DEFAULT_MONITOR_CONTAINER
from core.contracts import PipelineStep
from core.models import RegistryTransaction
from infrastructure.runtime import RuntimeClient, RuntimeOperationError
from prober.errors import error_for_step

logger = logging.getLogger(__name__)

# Local wall-clock time, second precision, with UTC offset
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z"
MARKER_FILE = "foo"

RuntimeFactory = Callable[[], RuntimeClient]


def probe_timestamp(now: Optional[datetime] = None) -> str:
    """Timestamp written into the marker file and the commit message."""
    moment = now if now is not None else datetime.now()
    return moment.astimezone().strftime(TIMESTAMP_FORMAT)


def container_names(container: Dict[str, Any]) -> List[str]:
    """Container names without the runtime's leading slash."""
    return [name.lstrip("/") for name in container.get("Names") or []]


def has_tag(tags: Optional[Iterable[str]], tag: str) -> bool:
    """True if any history tag is `tag` itself or `<repository>:<tag>`."""
    return any(t == tag or t.endswith(f":{tag}") for t in tags or ())


@contextmanager
def _classified(step: PipelineStep):
    """Turn runtime failures into the error class this step calls for."""
    try:
        yield
    except RuntimeOperationError as e:
        raise error_for_step(step, str(e)) from e


# ============================================================================
# IMAGE CLEANUP
# ============================================================================

class ImageCleaner:
    """
    Removes every image from the runtime, one at a time.

    Removing one image can cascade-remove others, so the image list is
    fetched again after every successful removal.

    When failures are tolerated (running under docker), an image that
    cannot be removed goes into `skipped` and is never attempted again
    for the lifetime of this cleaner. Otherwise the first failure
    propagates.

    Each pass either removes an image, grows `skipped`, or ends cleanup,
    so cleanup always terminates.
    """

    def __init__(self, tolerate_failures: bool = False):
        self.tolerate_failures = tolerate_failures
        self.skipped: Set[str] = set()

    def clear(self, runtime: RuntimeClient) -> int:
        """
        Remove images until a pass removes nothing.

        Returns:
            Number of images removed

        Raises:
            RuntimeOperationError: listing failed, or removal failed while
                failures are not tolerated
        """
        removed = 0
        while True:
            logger.info("Listing Docker images")
            images = runtime.list_images()
            candidates = [image["Id"] for image in images if image["Id"] not in self.skipped]
            if not candidates:
                return removed

            if not self._remove_first(runtime, candidates):
                return removed
            removed += 1

    def _remove_first(self, runtime: RuntimeClient, candidates: List[str]) -> bool:
        """Remove the first candidate that can be removed."""
        for image_id in candidates:
            logger.info(f"Clearing image {image_id}")
            try:
                runtime.remove_image(image_id)
                return True
            except RuntimeOperationError as e:
                if not self.tolerate_failures:
                    raise
                logger.warning(f"Skipping deleting image {image_id}: {e.message}")
                self.skipped.add(image_id)
        return False


# ============================================================================
# PIPELINE
# ============================================================================

class ProbePipeline:
    """
    The runtime/registry operations of a probe iteration.

    Holds only process-lifetime collaborators (the transaction descriptor,
    runtime settings and the image cleaner); each iteration passes in the
    runtime client returned by connect().

    Usage:
        pipeline = ProbePipeline(config.transaction(), config.runtime)
        runtime = pipeline.connect()
        pipeline.clear_containers(runtime)
        ...
    """

    def __init__(
        self,
        transaction: RegistryTransaction,
        runtime_config: RuntimeConfig,
        monitor_container: str = DEFAULT_MONITOR_CONTAINER,
        runtime_factory: Optional[RuntimeFactory] = None,
    ):
        self.transaction = transaction
        self.runtime_config = runtime_config
        self.monitor_container = monitor_container
        self.image_cleaner = ImageCleaner(tolerate_failures=runtime_config.under_docker)
        self._runtime_factory = runtime_factory or partial(RuntimeClient.connect, runtime_config)

    @property
    def constrained(self) -> bool:
        """Running inside a container managed by the same runtime."""
        return self.runtime_config.under_docker

    # ------------------------------------------------------------------
    # 1. Connect
    # ------------------------------------------------------------------

    def connect(self) -> RuntimeClient:
        with _classified(PipelineStep.CONNECT):
            return self._runtime_factory()

    # ------------------------------------------------------------------
    # 2-3. Cleanup
    # ------------------------------------------------------------------

    def clear_containers(self, runtime: RuntimeClient) -> int:
        """
        Force-remove every container except the monitor's own.

        Skipped entirely under docker.

        Returns:
            Number of containers removed
        """
        if self.constrained:
            logger.info("Running under docker, leaving containers in place")
            return 0

        removed = 0
        with _classified(PipelineStep.CLEAR_CONTAINERS):
            for container in runtime.list_containers():
                if self.monitor_container in container_names(container):
                    continue
                runtime.remove_container(container["Id"])
                removed += 1
        return removed

    def clear_images(self, runtime: RuntimeClient) -> int:
        with _classified(PipelineStep.CLEAR_IMAGES):
            return self.image_cleaner.clear(runtime)

    # ------------------------------------------------------------------
    # 4. Pull
    # ------------------------------------------------------------------

    def pull(self, runtime: RuntimeClient) -> None:
        with _classified(PipelineStep.PULL):
            runtime.pull(
                self.transaction.pull_reference,
                self.transaction.tag,
                self.transaction.credentials.auth_config(),
            )

    # ------------------------------------------------------------------
    # 5. Delete top layer
    # ------------------------------------------------------------------

    def delete_top_layer(self, runtime: RuntimeClient) -> Optional[str]:
        """
        Remove the history entry tagged latest.

        Returns:
            ID of the removed image, or None when nothing carries the tag
        """
        reference = f"{self.transaction.pull_reference}:{self.transaction.tag}"
        with _classified(PipelineStep.DELETE_TOP_LAYER):
            for entry in runtime.image_history(reference):
                if has_tag(entry.get("Tags"), self.transaction.tag):
                    logger.info(f"Deleting image {entry['Id']}")
                    runtime.remove_image(entry["Id"])
                    return entry["Id"]

        logger.info(f"No {self.transaction.tag} entry in history of {reference}")
        return None

    # ------------------------------------------------------------------
    # 6. Create new top layer
    # ------------------------------------------------------------------

    def create_top_layer(self, runtime: RuntimeClient, now: Optional[datetime] = None) -> str:
        """
        Commit a container built on the base layer as the new latest.

        The scratch container is removed once committed.

        Returns:
            ID of the committed image
        """
        timestamp = probe_timestamp(now)
        command = ["sh", "-c", f'echo "{timestamp}" > {MARKER_FILE}']

        with _classified(PipelineStep.CREATE_TOP_LAYER):
            container_id = runtime.create_container(self.transaction.base_layer_id, command)
            image_id = runtime.commit(
                container_id,
                repository=self.transaction.push_reference,
                tag=self.transaction.tag,
                message=f"Updated at {timestamp}",
            )
            runtime.remove_container(container_id)

        logger.info(f"Committed {self.transaction.push_reference}:{self.transaction.tag} as {image_id}")
        return image_id

    # ------------------------------------------------------------------
    # 7. Push
    # ------------------------------------------------------------------

    def push(self, runtime: RuntimeClient) -> None:
        with _classified(PipelineStep.PUSH):
            runtime.push(
                self.transaction.push_reference,
                self.transaction.tag,
                self.transaction.credentials.auth_config(),
            )


__all__ = [
    "ImageCleaner",
    "ProbePipeline",
    "RuntimeFactory",
    "probe_timestamp",
    "container_names",
    "has_tag",
    "TIMESTAMP_FORMAT",
]
