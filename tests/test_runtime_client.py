# ============================================================================
# RUNTIME CLIENT TESTS
# ============================================================================
# STATUS: Tests - Docker SDK wrapper
# PURPOSE: Verify connection setup, TLS material, error wrapping, streams
# CREATED: 17 OCT 2026
# ============================================================================
"""
Runtime Client Tests

Unit tests with a mocked docker.APIClient; nothing talks to a real
runtime.

Run with:
    pytest tests/test_runtime_client.py -v
"""

import pytest
from unittest.mock import MagicMock, patch

from docker.errors import APIError, DockerException, StreamParseError
from docker.tls import TLSConfig
from requests.exceptions import ConnectionError as RequestsConnectionError
from urllib3.exceptions import ProtocolError, ReadTimeoutError

from core.config import RuntimeConfig
from infrastructure.runtime import (
    RuntimeClient,
    RuntimeOperationError,
    build_tls_config,
    resolve_base_url,
)


# ============================================================================
# HELPERS
# ============================================================================

def _write_certs(directory, names=("ca.pem", "cert.pem", "key.pem")):
    for name in names:
        (directory / name).write_text("-----BEGIN PLACEHOLDER-----\n")
    return str(directory)


def _client(**api_attrs):
    api = MagicMock()
    for name, value in api_attrs.items():
        setattr(api, name, value)
    return RuntimeClient(api), api


# ============================================================================
# CONNECTION
# ============================================================================

class TestConnect:

    def test_plain_connection(self):
        with patch("infrastructure.runtime.docker.APIClient") as api_cls:
            client = RuntimeClient.connect(RuntimeConfig())

        api_cls.assert_called_once_with(
            base_url="unix:///var/run/docker.sock",
            version="auto",
            tls=False,
        )
        api_cls.return_value.ping.assert_called_once()
        assert client.api is api_cls.return_value

    def test_tls_connection(self, tmp_path):
        cert_path = _write_certs(tmp_path)
        config = RuntimeConfig(docker_host="tcp://10.0.0.5:2376", cert_path=cert_path)

        with patch("infrastructure.runtime.docker.APIClient") as api_cls:
            RuntimeClient.connect(config)

        kwargs = api_cls.call_args.kwargs
        assert kwargs["base_url"] == "https://10.0.0.5:2376"
        assert isinstance(kwargs["tls"], TLSConfig)
        assert kwargs["tls"].cert == (str(tmp_path / "cert.pem"), str(tmp_path / "key.pem"))
        assert kwargs["tls"].ca_cert == str(tmp_path / "ca.pem")

    def test_unreachable_runtime(self):
        with patch("infrastructure.runtime.docker.APIClient") as api_cls:
            api_cls.side_effect = DockerException("Error while fetching server API version")
            with pytest.raises(RuntimeOperationError) as exc_info:
                RuntimeClient.connect(RuntimeConfig())

        assert exc_info.value.operation == "connect"

    def test_ping_failure(self):
        with patch("infrastructure.runtime.docker.APIClient") as api_cls:
            api_cls.return_value.ping.side_effect = RequestsConnectionError("refused")
            with pytest.raises(RuntimeOperationError) as exc_info:
                RuntimeClient.connect(RuntimeConfig())

        assert exc_info.value.operation == "ping"


class TestTransport:

    def test_missing_key_file(self, tmp_path):
        cert_path = _write_certs(tmp_path, names=("ca.pem", "cert.pem"))

        with pytest.raises(RuntimeOperationError) as exc_info:
            build_tls_config(cert_path)

        assert "key.pem" in exc_info.value.message

    @pytest.mark.parametrize("host,use_tls,expected", [
        ("tcp://h:2376", True, "https://h:2376"),
        ("http://h:2375", True, "https://h:2375"),
        ("tcp://h:2375", False, "tcp://h:2375"),
        ("unix:///var/run/docker.sock", True, "unix:///var/run/docker.sock"),
    ])
    def test_resolve_base_url(self, host, use_tls, expected):
        assert resolve_base_url(host, use_tls) == expected


# ============================================================================
# OPERATIONS
# ============================================================================

class TestOperations:

    def test_remove_container_forces_and_drops_volumes(self):
        client, api = _client()
        client.remove_container("abc")
        api.remove_container.assert_called_once_with("abc", v=True, force=True)

    def test_list_calls_include_stopped(self):
        client, api = _client()
        client.list_containers()
        client.list_images()
        api.containers.assert_called_once_with(all=True)
        api.images.assert_called_once_with(all=True)

    def test_api_error_wrapped(self):
        response = MagicMock(status_code=409, reason="Conflict")
        client, api = _client()
        api.remove_image.side_effect = APIError("conflict", response=response)

        with pytest.raises(RuntimeOperationError) as exc_info:
            client.remove_image("sha256:x")

        assert exc_info.value.operation == "remove_image"
        assert isinstance(exc_info.value.__cause__, APIError)

    def test_create_and_commit(self):
        client, api = _client()
        api.create_container.return_value = {"Id": "c1", "Warnings": []}
        api.commit.return_value = {"Id": "sha256:new"}

        container_id = client.create_container("base", ["sh", "-c", "true"])
        image_id = client.commit(container_id, "reg/repo", "latest", "Updated at now")

        api.create_container.assert_called_once_with(image="base", command=["sh", "-c", "true"])
        api.commit.assert_called_once_with("c1", repository="reg/repo", tag="latest", message="Updated at now")
        assert image_id == "sha256:new"


class TestProgressStreams:

    def test_pull_streams_with_auth(self):
        client, api = _client()
        api.pull.return_value = iter([
            {"status": "Pulling from acme/probe", "id": "latest"},
            {"status": "Download complete", "id": "a1b2"},
        ])
        auth = {"username": "bot", "password": "pw"}

        client.pull("quay.io/acme/probe", "latest", auth)

        api.pull.assert_called_once_with(
            "quay.io/acme/probe",
            tag="latest",
            stream=True,
            decode=True,
            auth_config=auth,
        )

    def test_error_record_in_pull_stream(self):
        client, api = _client()
        api.pull.return_value = iter([
            {"status": "Pulling from acme/probe"},
            {"errorDetail": {"message": "unauthorized"}, "error": "unauthorized"},
        ])

        with pytest.raises(RuntimeOperationError) as exc_info:
            client.pull("quay.io/acme/probe", "latest", {})

        assert exc_info.value.operation == "pull"
        assert exc_info.value.message == "unauthorized"

    def test_error_detail_only_in_push_stream(self):
        client, api = _client()
        api.push.return_value = iter([
            {"status": "Preparing", "id": "a1"},
            {"errorDetail": {"message": "denied: requested access to the resource is denied"}},
        ])

        with pytest.raises(RuntimeOperationError) as exc_info:
            client.push("registry.example.com/acme/probe", "latest", {})

        assert exc_info.value.operation == "push"
        assert "denied" in exc_info.value.message

    def test_transport_error_mid_stream(self):
        def broken_stream():
            yield {"status": "Pushing", "id": "a1"}
            raise RequestsConnectionError("connection reset")

        client, api = _client()
        api.push.return_value = broken_stream()

        with pytest.raises(RuntimeOperationError) as exc_info:
            client.push("registry.example.com/acme/probe", "latest", {})

        assert exc_info.value.operation == "push"

    @pytest.mark.parametrize("error", [
        ReadTimeoutError(None, None, "Read timed out."),
        ProtocolError("Connection broken", ConnectionResetError(104, "reset by peer")),
        StreamParseError(ValueError("Expecting value")),
        ConnectionResetError(104, "Connection reset by peer"),
    ], ids=["read-timeout", "protocol", "stream-parse", "socket-reset"])
    @pytest.mark.parametrize("operation", ["pull", "push"])
    def test_stream_read_failure_is_wrapped(self, operation, error):
        def broken_stream():
            yield {"status": "Downloading", "id": "a1", "progress": "[=>   ]"}
            raise error

        client, api = _client()
        getattr(api, operation).return_value = broken_stream()

        with pytest.raises(RuntimeOperationError) as exc_info:
            getattr(client, operation)("registry.example.com/acme/probe", "latest", {})

        assert exc_info.value.operation == operation
        assert exc_info.value.__cause__ is error
