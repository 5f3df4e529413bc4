"""Periodic reloads of the school directory."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from myschool.index.loader import RegionalLoader
from myschool.index.snapshot import SnapshotHolder
from myschool.models import RefreshStatus

LOGGER = logging.getLogger(__name__)


class RefreshCoordinator:
    """Runs the loader and publishes its snapshot, one reload at a time."""

    def __init__(
        self,
        loader: RegionalLoader,
        holder: SnapshotHolder,
        *,
        interval: float = 86400.0,
    ) -> None:
        self.loader = loader
        self.holder = holder
        self.interval = interval
        self._lock = threading.Lock()
        self._in_progress = False
        self._last_refresh: datetime | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def in_progress(self) -> bool:
        with self._lock:
            return self._in_progress

    @property
    def last_refresh(self) -> datetime | None:
        with self._lock:
            return self._last_refresh

    def refresh(self) -> bool:
        """Reload and publish the directory.

        Returns False without doing anything when another reload is running.
        """
        with self._lock:
            if self._in_progress:
                LOGGER.debug("Refresh already in progress, skipping")
                return False
            self._in_progress = True

        try:
            snapshot = self.loader.load_all()
            self.holder.publish(snapshot)
            with self._lock:
                self._last_refresh = datetime.now(timezone.utc)
        finally:
            with self._lock:
                self._in_progress = False
        return True

    def refresh_async(self) -> threading.Thread | None:
        """Start one reload on a daemon thread, or return None if one is running."""
        if self.in_progress:
            return None
        thread =threading.Thread(target=self._refresh_logged, name="refresh-once", daemon=True)
        thread.start()
        return thread

    def status(self) -> RefreshStatus:
        with self._lock:
            last_refresh = self._last_refresh
            in_progress = self._in_progress
        return RefreshStatus(
            entry_count=len(self.holder),
            last_refresh=last_refresh,
            in_progress=in_progress,
        )

    def start(self) -> None:
        """Refresh now and then every ``interval`` seconds on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="refresh-loop", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        LOGGER.info("Loading all schools in background...")
        self._refresh_logged()
        while not self._stop.wait(self.interval):
            LOGGER.info("Refreshing school data...")
            self._refresh_logged()

    def _refresh_logged(self) -> None:
        try:
            if self.refresh():
                LOGGER.info("School directory refreshed: %d schools", len(self.holder))
        except Exception:
            LOGGER.exception("Failed to refresh schools")
