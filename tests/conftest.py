# ============================================================================
# TEST FIXTURES
# ============================================================================
# STATUS: Tests - Shared fixtures
# PURPOSE: Scripted in-memory container runtime and pipeline factories
# CREATED: 17 OCT 2026
# ============================================================================
"""
Shared test fixtures.

ScriptedRuntime stands in for RuntimeClient: it keeps containers and
images in memory, records every call, and fails whichever operations a
test scripts to fail.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest
from prometheus_client import CollectorRegistry

from core.config import RuntimeConfig
from core.models import RegistryCredentials, RegistryTransaction
from core.observability import ProbeMetrics
from infrastructure.runtime import RuntimeOperationError
from prober.steps import ProbePipeline


DEFAULT_HISTORY = [
    {"Id": "sha256:top", "Tags": ["quay.io/acme/probe:latest"]},
    {"Id": "<missing>", "Tags": None},
]


class ScriptedRuntime:
    """
    In-memory runtime double.

    Args:
        containers: (id, name) pairs currently present
        images: image IDs currently present
        history: entries returned by image_history
        fail: operation name -> error message; the operation always fails
        fail_times: operation name -> number of calls that fail before it
            starts succeeding
        unremovable: image IDs whose removal always fails
        cascade: image ID -> IDs removed along with it
    """

    def __init__(
        self,
        containers: Iterable[Tuple[str, str]] = (),
        images: Iterable[str] = (),
        history: Optional[List[Dict[str, Any]]] = None,
        fail: Optional[Dict[str, str]] = None,
        fail_times: Optional[Dict[str, int]] = None,
        unremovable: Iterable[str] = (),
        cascade: Optional[Dict[str, List[str]]] = None,
    ):
        self.containers = [{"Id": cid, "Names": [f"/{name}"]} for cid, name in containers]
        self.images = list(images)
        self.history = DEFAULT_HISTORY if history is None else history
        self.fail = dict(fail or {})
        self.fail_times = dict(fail_times or {})
        self.unremovable = set(unremovable)
        self.cascade = dict(cascade or {})
        self.calls: List[Tuple[str, tuple]] = []
        self.close_count = 0

    # -- bookkeeping ----------------------------------------------------

    def _record(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self.fail:
            raise RuntimeOperationError(operation, self.fail[operation])
        if self.fail_times.get(operation, 0) > 0:
            self.fail_times[operation] -= 1
            raise RuntimeOperationError(operation, f"scripted {operation} failure")

    def operations(self) -> List[str]:
        return [op for op, _ in self.calls]

    def called(self, operation: str) -> bool:
        return operation in self.operations()

    def args_of(self, operation: str) -> tuple:
        for op, args in self.calls:
            if op == operation:
                return args
        raise AssertionError(f"{operation} was never called")

    # -- RuntimeClient surface -----------------------------------------

    def close(self) -> None:
        self.close_count += 1

    def list_containers(self):
        self._record("list_containers")
        return list(self.containers)

    def remove_container(self, container_id: str) -> None:
        self._record("remove_container", container_id)
        self.containers = [c for c in self.containers if c["Id"] != container_id]

    def list_images(self):
        self._record("list_images")
        return [{"Id": image_id} for image_id in self.images]

    def remove_image(self, image_id: str) -> None:
        self._record("remove_image", image_id)
        if image_id in self.unremovable:
            raise RuntimeOperationError("remove_image", f"conflict: unable to delete {image_id}")
        gone = {image_id, *self.cascade.get(image_id, [])}
        self.images = [i for i in self.images if i not in gone]

    def pull(self, repository: str, tag: str, auth_config: Dict[str, str]) -> None:
        self._record("pull", repository, tag, auth_config)

    def image_history(self, reference: str):
        self._record("image_history", reference)
        return list(self.history)

    def create_container(self, image: str, command) -> str:
        self._record("create_container", image, list(command))
        return "scratch-1"

    def commit(self, container_id: str, repository: str, tag: str, message: str) -> str:
        self._record("commit", container_id, repository, tag, message)
        return "sha256:new"

    def push(self, repository: str, tag: str, auth_config: Dict[str, str]) -> None:
        self._record("push", repository, tag, auth_config)


@pytest.fixture
def transaction():
    return RegistryTransaction(
        repository="acme/probe",
        base_layer_id="sha256:base",
        registry_host="registry.example.com",
        credentials=RegistryCredentials(username="bot", password="s3cret"),
    )


@pytest.fixture
def make_pipeline(transaction):
    """Factory: pipeline whose connect() hands out the given runtime."""
    def _make(runtime=None, under_docker=False, connect_error=None):
        def factory():
            if connect_error is not None:
                raise RuntimeOperationError("connect", connect_error)
            return runtime

        return ProbePipeline(
            transaction,
            RuntimeConfig(under_docker=under_docker),
            runtime_factory=factory,
        )
    return _make


@pytest.fixture
def metrics():
    return ProbeMetrics(registry=CollectorRegistry())
