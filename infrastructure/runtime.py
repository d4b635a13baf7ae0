# ============================================================================
# CONTAINER RUNTIME CLIENT
# ============================================================================
# STATUS: Infrastructure - Docker Engine API access
# PURPOSE: Connect to the local runtime and run the probe's runtime operations
# CREATED: 17 OCT 2026
# ============================================================================
"""
Container Runtime Client

RuntimeClient wraps docker.APIClient with the handful of operations the
probe pipeline needs:
- list/remove containers
- list/remove images
- pull/push with progress streamed to the log
- image history
- create a container and commit it as an image

Every failure from the docker SDK or its HTTP transport surfaces as
RuntimeOperationError, tagged with the operation that failed. Deciding
whether a failure is fatal is left to the caller.

Connection:
    DOCKER_HOST selects the endpoint (default unix:///var/run/docker.sock).
    DOCKER_CERT_PATH switches to TLS with ca.pem, cert.pem and key.pem
    from that directory.
"""

import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Sequence
from urllib.parse import urlsplit, urlunsplit

import docker
from docker.errors import DockerException, StreamParseError
from docker.tls import TLSConfig
from requests.exceptions import RequestException
from urllib3.exceptions import HTTPError as TransportError

from core.config import RuntimeConfig

logger = logging.getLogger(__name__)

CA_FILE = "ca.pem"
CERT_FILE = "cert.pem"
KEY_FILE = "key.pem"


class RuntimeOperationError(Exception):
    """A runtime API call failed."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


@contextmanager
def _runtime_call(operation: str):
    """
    Translate docker SDK and transport errors into RuntimeOperationError.

    Pull and push streams are read straight off the urllib3 response, so a
    stalled or truncated stream surfaces as a urllib3 error or a socket
    OSError rather than a requests exception.
    """
    try:
        yield
    except RuntimeOperationError:
        raise
    except (DockerException, RequestException, StreamParseError, TransportError, OSError) as e:
        raise RuntimeOperationError(operation, str(e)) from e


# ============================================================================
# TRANSPORT
# ============================================================================

def build_tls_config(cert_path: str) -> TLSConfig:
    """
    Build a mutually authenticated TLS config from a certificate directory.

    Raises:
        RuntimeOperationError: a certificate file is missing or unusable
    """
    ca_cert = os.path.join(cert_path, CA_FILE)
    client_cert = os.path.join(cert_path, CERT_FILE)
    client_key = os.path.join(cert_path, KEY_FILE)

    for path in (ca_cert, client_cert, client_key):
        if not os.path.isfile(path):
            raise RuntimeOperationError("tls", f"certificate file not found: {path}")

    with _runtime_call("tls"):
        return TLSConfig(
            client_cert=(client_cert, client_key),
            ca_cert=ca_cert,
            verify=True,
        )


def resolve_base_url(docker_host: str, use_tls: bool) -> str:
    """Switch TCP/HTTP endpoints to https when TLS is configured."""
    if not use_tls:
        return docker_host
    parts = urlsplit(docker_host)
    if parts.scheme in ("tcp", "http"):
        return urlunsplit(parts._replace(scheme="https"))
    return docker_host


# ============================================================================
# CLIENT
# ============================================================================

class RuntimeClient:
    """
    Runtime operations used by the probe pipeline.

    Usage:
        runtime = RuntimeClient.connect(RuntimeConfig.from_env())
        try:
            runtime.pull("quay.io/acme/probe", "latest", auth_config)
        finally:
            runtime.close()
    """

    def __init__(self, api: docker.APIClient):
        self.api = api

    @classmethod
    def connect(cls, config: RuntimeConfig) -> "RuntimeClient":
        """
        Open and verify a connection to the runtime.

        The SDK negotiates the API version on construction, then a ping
        confirms the daemon answers.

        Raises:
            RuntimeOperationError: endpoint unreachable or TLS material invalid
        """
        tls = build_tls_config(config.cert_path) if config.use_tls else False
        base_url = resolve_base_url(config.docker_host, config.use_tls)

        logger.info(f"Trying docker host: {base_url}")
        with _runtime_call("connect"):
            api = docker.APIClient(base_url=base_url, version="auto", tls=tls)

        client = cls(api)
        client.ping()
        return client

    def ping(self) -> None:
        with _runtime_call("ping"):
            self.api.ping()

    def close(self) -> None:
        with _runtime_call("close"):
            self.api.close()

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def list_containers(self) -> List[Dict[str, Any]]:
        """All containers, running or not."""
        with _runtime_call("list_containers"):
            return self.api.containers(all=True)

    def remove_container(self, container_id: str) -> None:
        """Force-remove a container together with its volumes."""
        with _runtime_call("remove_container"):
            self.api.remove_container(container_id, v=True, force=True)

    def create_container(self, image: str, command: Sequence[str]) -> str:
        """Create (but do not start) a container; returns its ID."""
        with _runtime_call("create_container"):
            result = self.api.create_container(image=image, command=list(command))
        for warning in result.get("Warnings") or []:
            logger.warning(f"Create container: {warning}")
        return result["Id"]

    def commit(self, container_id: str, repository: str, tag: str, message: str) -> str:
        """Commit a container as repository:tag; returns the new image ID."""
        with _runtime_call("commit"):
            result = self.api.commit(
                container_id,
                repository=repository,
                tag=tag,
                message=message,
            )
        return result["Id"]

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def list_images(self) -> List[Dict[str, Any]]:
        """All images, including intermediate layers."""
        with _runtime_call("list_images"):
            return self.api.images(all=True)

    def remove_image(self, image_id: str) -> None:
        with _runtime_call("remove_image"):
            self.api.remove_image(image_id)

    def image_history(self, reference: str) -> List[Dict[str, Any]]:
        with _runtime_call("image_history"):
            return self.api.history(reference)

    def pull(self, repository: str, tag: str, auth_config: Dict[str, str]) -> None:
        """Pull repository:tag, forwarding progress to the log."""
        with _runtime_call("pull"):
            stream = self.api.pull(
                repository,
                tag=tag,
                stream=True,
                decode=True,
                auth_config=auth_config,
            )
            self._consume_progress("pull", stream)

    def push(self, repository: str, tag: str, auth_config: Dict[str, str]) -> None:
        """Push repository:tag, forwarding progress to the log."""
        with _runtime_call("push"):
            stream = self.api.push(
                repository,
                tag=tag,
                stream=True,
                decode=True,
                auth_config=auth_config,
            )
            self._consume_progress("push", stream)

    @staticmethod
    def _consume_progress(operation: str, stream: Iterable[Dict[str, Any]]) -> None:
        """
        Log each progress record; raise on the first error record.

        The engine reports pull/push failures inside a 200 response, so
        the stream has to be drained to find them.
        """
        for record in stream:
            error = record.get("error")
            if error is None and record.get("errorDetail"):
                error = record["errorDetail"].get("message")
            if error:
                raise RuntimeOperationError(operation, error)

            parts = [record.get("id"), record.get("status"), record.get("progress")]
            line = " ".join(str(p) for p in parts if p)
            if line:
                logger.info(line)


__all__ = [
    "RuntimeClient",
    "RuntimeOperationError",
    "build_tls_config",
    "resolve_base_url",
]
