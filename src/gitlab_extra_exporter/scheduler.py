"""Scheduler: refresh the snapshot cache now and then every interval."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from .aggregator import Aggregator
from .cache import SnapshotCache
from .errors import ExporterError

logger = logging.getLogger(__name__)


class Scheduler:
    """Runs aggregation cycles sequentially in a background thread."""

    def __init__(self, aggregator: Aggregator, cache: SnapshotCache, interval_seconds: float) -> None:
        self._aggregator = aggregator
        self._cache = cache
        self._interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run_cycle(self) -> bool:
        """Run one aggregation and publish its snapshot.

        Failures are logged and leave the cached snapshot untouched; the
        cache is only marked as down. Returns whether the cycle succeeded.
        """
        started = time.monotonic()
        try:
            snapshot = self._aggregator.run()
        except ExporterError as exc:
            logger.error("Refresh cycle failed: %s", exc, extra={"error_type": type(exc).__name__})
            self._cache.mark_failed()
            return False
        except Exception:
            logger.exception("Refresh cycle failed with an unexpected error")
            self._cache.mark_failed()
            return False

        self._cache.publish(snapshot)
        duration_seconds = round(time.monotonic() - started, 3)
        logger.info(
            "Refresh cycle complete in %.3fs: %d projects, %d merge requests",
            duration_seconds,
            len(snapshot.projects),
            len(snapshot.merge_requests),
            extra={
                "duration_seconds": duration_seconds,
                "projects": len(snapshot.projects),
                "merge_requests": len(snapshot.merge_requests),
            },
        )
        return True

    def run_forever(self) -> None:
        """Run a cycle immediately, then one every interval until stopped."""
        while not self._stop_event.is_set():
            self.run_cycle()
            self._stop_event.wait(self._interval_seconds)

        logger.info("Scheduler stopped")

    def start(self) -> threading.Thread:
        """Start :meth:`run_forever` in a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            name="gitlab-extra-scheduler",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop scheduling new cycles; a running cycle is not interrupted."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
