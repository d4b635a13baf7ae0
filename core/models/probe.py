# ============================================================================
# PROBE MODELS
# ============================================================================
# STATUS: Core model - Probe flags and registry transaction descriptor
# PURPOSE: Immutable values shared between the probe loop and the HTTP surface
# CREATED: 17 OCT 2026
# EXPORTS: ProbeFlags, RegistryCredentials, RegistryTransaction
# DEPENDENCIES: pydantic
# ============================================================================
"""
Probe Models

ProbeFlags is the snapshot published by the probe loop after every flag
transition. Readers (the /health and /status endpoints) only ever see a
whole snapshot, never a half-updated one.

RegistryTransaction is the fixed description of what the probe pulls and
pushes. It is built once at startup and never mutated.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, SecretStr


LATEST_TAG = "latest"


class ProbeFlags(BaseModel):
    """
    Immutable snapshot of the two probe flags.

    healthy: the runtime connection and destructive cleanup steps work.
    status: the most recently attempted pull/push transaction succeeded.

    Both start True at process start and are only replaced by the probe
    loop publishing a new snapshot.
    """
    model_config = ConfigDict(frozen=True)

    healthy: bool = True
    status: bool = True
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def with_changes(self, **changes: Any) -> "ProbeFlags":
        """Return a new snapshot with the given flags replaced."""
        changes.setdefault("updated_at", datetime.now(timezone.utc))
        return self.model_copy(update=changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "status": self.status,
            "updated_at": self.updated_at.isoformat(),
        }


class RegistryCredentials(BaseModel):
    """Username/password pair used for both pull and push."""
    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1)
    password: SecretStr

    def auth_config(self) -> Dict[str, str]:
        """Auth payload in the shape the runtime client expects."""
        return {
            "username": self.username,
            "password": self.password.get_secret_value(),
        }


class RegistryTransaction(BaseModel):
    """
    The repository the probe exercises and where it lives.

    Pulls come from pull_registry (a fixed public host), pushes go to
    registry_host, the registry being monitored.
    """
    model_config = ConfigDict(frozen=True)

    repository: str = Field(min_length=1, description="Repository to pull and push")
    base_layer_id: str = Field(min_length=1, description="Image the new top layer is built on")
    registry_host: str = Field(min_length=1, description="Registry being monitored")
    pull_registry: str = Field(default="quay.io", min_length=1)
    credentials: RegistryCredentials
    tag: str = LATEST_TAG

    @property
    def pull_reference(self) -> str:
        """Repository name as pulled, without tag."""
        return f"{self.pull_registry}/{self.repository}"

    @property
    def push_reference(self) -> str:
        """Repository name as committed and pushed, without tag."""
        return f"{self.registry_host}/{self.repository}"


__all__ = [
    "LATEST_TAG",
    "ProbeFlags",
    "RegistryCredentials",
    "RegistryTransaction",
]
