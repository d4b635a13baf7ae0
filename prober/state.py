# ============================================================================
# PROBE STATE CELL
# ============================================================================
# STATUS: Core - Shared probe flags
# PURPOSE: Single-writer cell publishing immutable ProbeFlags snapshots
# CREATED: 17 OCT 2026
# ============================================================================
"""
Probe State

The probe loop is the only writer; HTTP handlers are readers. Each write
builds a new frozen ProbeFlags and swaps the reference, so a reader never
blocks and never observes a half-applied update.
"""

import logging
import threading
from typing import Any, Optional

from core.models import ProbeFlags

logger = logging.getLogger(__name__)


class ProbeState:
    """
    Owned cell holding the latest ProbeFlags snapshot.

    Readers use `snapshot` (or the healthy/status shortcuts) without
    locking. The writer lock only serializes publishers.
    """

    def __init__(self, initial: Optional[ProbeFlags] = None):
        self._snapshot = initial if initial is not None else ProbeFlags()
        self._write_lock = threading.Lock()

    @property
    def snapshot(self) -> ProbeFlags:
        return self._snapshot

    @property
    def healthy(self) -> bool:
        return self._snapshot.healthy

    @property
    def status(self) -> bool:
        return self._snapshot.status

    def publish(self, **changes: Any) -> ProbeFlags:
        """
        Replace the current snapshot with one carrying `changes`.

        Returns:
            The snapshot now visible to readers
        """
        with self._write_lock:
            current = self._snapshot
            updated = current.with_changes(**changes)
            self._snapshot = updated

        for name in ("healthy", "status"):
            before, after = getattr(current, name), getattr(updated, name)
            if before != after:
                logger.debug(f"Probe flag {name}: {before} -> {after}")

        return updated


__all__ = [
    "ProbeState",
]
