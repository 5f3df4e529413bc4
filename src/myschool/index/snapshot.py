"""Holder for the currently published directory snapshot."""

from __future__ import annotations

import threading

from myschool.models import Snapshot


class SnapshotHolder:
    """Single reference to the live snapshot, swapped whole on publish.

    The lock only covers reading or replacing the reference; snapshots are
    immutable, so readers work on their copy without holding it.
    """

    def __init__(self, snapshot: Snapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = snapshot

    def current(self) -> Snapshot | None:
        with self._lock:
            return self._snapshot

    def publish(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def __len__(self) -> int:
        snapshot = self.current()
        return len(snapshot) if snapshot is not None else 0
