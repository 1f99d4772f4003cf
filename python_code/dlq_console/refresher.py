"""
Background task that keeps the queue directory fresh.

The refresher owns one daemon thread which calls `QueueDirectory.refresh`
every `interval_seconds`. A `threading.Event` is both the timer and the
cancellation token: `stop()` wakes the thread immediately, including while a
refresh is backing off after a failed page. Tests drive single cycles with
`run_once()` instead of waiting on the clock.
"""

import threading
from typing import Optional

from aws_lambda_powertools import Logger

from .directory import QueueDirectory


class QueueRefresher:
    def __init__(self, directory: QueueDirectory, interval_seconds: float, logger: Logger):
        self._directory = directory
        self._interval_seconds = interval_seconds
        self._logger = logger
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> bool:
        """Runs a single refresh cycle on the calling thread."""
        if not self.is_running:
            # A stopped refresher must not cancel a manual refresh.
            self._stop_event.clear()
        refreshed = self._directory.refresh(cancel_event=self._stop_event)
        self.cycles += 1
        return refreshed

    def start(self, run_immediately: bool = True) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, args=(run_immediately,), name="queue-directory-refresher", daemon=True
        )
        self._thread.start()
        self._logger.info("Queue refresher started.", extra={"interval_seconds": self._interval_seconds})

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                self._logger.warning("Queue refresher did not stop in time.", extra={"timeout": timeout})
            else:
                self._thread = None
                self._logger.info("Queue refresher stopped.", extra={"cycles": self.cycles})

    def _loop(self, run_immediately: bool) -> None:
        if not run_immediately and self._stop_event.wait(self._interval_seconds):
            return
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                # refresh() only retries gateway failures; the loop outlives anything else.
                self._logger.exception("Unexpected error during queue directory refresh.")
            if self._stop_event.wait(self._interval_seconds):
                break
