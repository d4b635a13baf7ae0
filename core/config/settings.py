# ============================================================================
# MONITOR SETTINGS
# ============================================================================
# STATUS: Core - Startup configuration
# PURPOSE: Command line, environment and default values for the monitor
# CREATED: 17 OCT 2026
# ============================================================================
"""
Monitor Settings

Every flag-backed option resolves in this order:
    1. Command line flag (--registry-host)
    2. Environment variable (REGISTRY_MONITOR_REGISTRY_HOST)
    3. Default

Runtime connection settings follow the container runtime's own
environment conventions (DOCKER_HOST, DOCKER_CERT_PATH) and are not
prefixed.

Usage:
    config = MonitorConfig.load(sys.argv[1:])
    transaction = config.transaction()
"""

import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from core.models import RegistryCredentials, RegistryTransaction


ENV_PREFIX = "REGISTRY_MONITOR"
DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"
DEFAULT_PULL_REGISTRY = "quay.io"
DEFAULT_MONITOR_CONTAINER = "monitor"

SUCCESS_INTERVAL_SEC = 120.0
FAILURE_INTERVAL_SEC = 30.0

# Accepted --loglevel values mapped onto stdlib levels
LOG_LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "panic": logging.CRITICAL,
}

REQUIRED_OPTIONS = ("username", "password", "registry_host", "repository", "base_layer_id")


class ConfigError(ValueError):
    """Raised when startup configuration is missing or invalid."""


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def env_name(option: str) -> str:
    """Environment variable backing a flag-style option name."""
    return f"{ENV_PREFIX}_{option.replace('-', '_').upper()}"


def parse_listen(listen: str) -> Tuple[str, int]:
    """
    Split a listen address of the form "host:port" or ":port".

    An empty host binds all interfaces.
    """
    host, sep, port = listen.rpartition(":")
    if not sep or not port.isdigit():
        raise ConfigError(f"Invalid listen address: {listen!r}")
    return host or "0.0.0.0", int(port)


# ============================================================================
# RUNTIME CONNECTION
# ============================================================================

@dataclass(frozen=True)
class RuntimeConfig:
    """
    Where and how to reach the local container runtime.

    cert_path switches the connection to TLS using ca.pem, cert.pem and
    key.pem from that directory.
    """
    docker_host: str = DEFAULT_DOCKER_HOST
    cert_path: Optional[str] = None
    under_docker: bool = False

    @property
    def use_tls(self) -> bool:
        return bool(self.cert_path)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RuntimeConfig":
        """
        Load runtime settings from the environment.

        DOCKER_HOST: runtime endpoint (default unix:///var/run/docker.sock)
        DOCKER_CERT_PATH: directory holding TLS material (optional)
        UNDER_DOCKER: "true" when the monitor itself runs in a container
        """
        env = os.environ if environ is None else environ
        return cls(
            docker_host=env.get("DOCKER_HOST") or DEFAULT_DOCKER_HOST,
            cert_path=env.get("DOCKER_CERT_PATH") or None,
            under_docker=_env_flag(env.get("UNDER_DOCKER")),
        )


# ============================================================================
# MONITOR CONFIG
# ============================================================================

@dataclass(frozen=True)
class MonitorConfig:
    """Complete startup configuration for the registry monitor."""
    username: str = ""
    password: str = ""
    registry_host: str = ""
    repository: str = ""
    base_layer_id: str = ""
    pull_registry: str = DEFAULT_PULL_REGISTRY
    monitor_container: str = DEFAULT_MONITOR_CONTAINER

    listen: str = ":8000"
    log_level: str = "info"
    log_format: str = "text"
    prometheus_namespace: str = ""

    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)

    # Pacing between iterations
    success_interval: float = SUCCESS_INTERVAL_SEC
    failure_interval: float = FAILURE_INTERVAL_SEC

    @classmethod
    def load(
        cls,
        argv: Optional[Sequence[str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "MonitorConfig":
        """
        Build configuration from command line arguments and environment.

        Raises:
            ConfigError: required option missing or a value is invalid
        """
        env = os.environ if environ is None else environ
        args = build_arg_parser().parse_args(list(argv or []))

        def resolve(option: str, default: str = "") -> str:
            value = getattr(args, option.replace("-", "_"))
            if value is not None:
                return value
            return env.get(env_name(option), default)

        config = cls(
            username=resolve("username"),
            password=resolve("password"),
            registry_host=resolve("registry-host"),
            repository=resolve("repository"),
            base_layer_id=resolve("base-layer-id"),
            pull_registry=resolve("pull-registry", DEFAULT_PULL_REGISTRY),
            monitor_container=resolve("monitor-container", DEFAULT_MONITOR_CONTAINER),
            listen=resolve("listen", ":8000"),
            log_level=resolve("loglevel", "info"),
            log_format=resolve("log-format", "text"),
            prometheus_namespace=env.get("PROMETHEUS_NAMESPACE", ""),
            runtime=RuntimeConfig.from_env(env),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check required options and parseable values."""
        for option in REQUIRED_OPTIONS:
            if not getattr(self, option):
                raise ConfigError(f"Missing {option.replace('_', '-')} flag")

        if self.log_level.lower() not in LOG_LEVELS:
            raise ConfigError(
                f"Invalid log level {self.log_level!r}; "
                f"expected one of {', '.join(LOG_LEVELS)}"
            )

        if self.log_format.lower() not in ("text", "json"):
            raise ConfigError(f"Invalid log format {self.log_format!r}; expected text or json")

        parse_listen(self.listen)

    @property
    def logging_level(self) -> int:
        return LOG_LEVELS[self.log_level.lower()]

    @property
    def json_logs(self) -> bool:
        return self.log_format.lower() == "json"

    @property
    def bind(self) -> Tuple[str, int]:
        return parse_listen(self.listen)

    def transaction(self) -> RegistryTransaction:
        """The immutable pull/push descriptor for the probe loop."""
        return RegistryTransaction(
            repository=self.repository,
            base_layer_id=self.base_layer_id,
            registry_host=self.registry_host,
            pull_registry=self.pull_registry,
            credentials=RegistryCredentials(
                username=self.username,
                password=self.password,
            ),
        )

    def to_safe_dict(self) -> Dict[str, object]:
        """Configuration summary suitable for logging (no password)."""
        return {
            "username": self.username,
            "registry_host": self.registry_host,
            "repository": self.repository,
            "base_layer_id": self.base_layer_id,
            "pull_registry": self.pull_registry,
            "docker_host": self.runtime.docker_host,
            "tls": self.runtime.use_tls,
            "under_docker": self.runtime.under_docker,
            "listen": self.listen,
        }


# ============================================================================
# COMMAND LINE
# ============================================================================

_FLAGS: List[Tuple[str, str]] = [
    ("listen", "Address to serve /health, /status and /metrics on (default :8000)"),
    ("loglevel", "Log level: debug, info, warn, error, fatal, panic (default info)"),
    ("log-format", "Log output format: text or json (default text)"),
    ("username", "Registry username for pulling and pushing"),
    ("password", "Registry password for pulling and pushing"),
    ("registry-host", "Hostname of the registry being monitored"),
    ("repository", "Repository on the registry to pull and push"),
    ("base-layer-id", "ID of the base layer image in the repository"),
    ("pull-registry", f"Registry to pull the test image from (default {DEFAULT_PULL_REGISTRY})"),
    ("monitor-container", f"Name of the monitor's own container (default {DEFAULT_MONITOR_CONTAINER})"),
]


def build_arg_parser() -> argparse.ArgumentParser:
    """
    Argument parser for the monitor.

    All flags default to None so unset flags fall through to the
    environment.
    """
    parser = argparse.ArgumentParser(
        prog="registry-monitor",
        description="Synthetic pull/push prober for a container image registry",
        epilog=f"Every flag may also be set as {ENV_PREFIX}_<FLAG>, e.g. {env_name('registry-host')}",
    )
    for flag, help_text in _FLAGS:
        parser.add_argument(f"--{flag}", default=None, help=help_text)
    return parser


__all__ = [
    "ConfigError",
    "MonitorConfig",
    "RuntimeConfig",
    "build_arg_parser",
    "env_name",
    "parse_listen",
    "SUCCESS_INTERVAL_SEC",
    "FAILURE_INTERVAL_SEC",
]
