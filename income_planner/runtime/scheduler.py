"""Caller-owned periodic refresh loop."""

from __future__ import annotations

import logging
import threading
from typing import Callable

LOGGER = logging.getLogger(__name__)


class RefreshScheduler:
    """Runs ``callback`` every ``interval_seconds`` on a daemon thread.

    A tick is skipped while ``is_busy()`` reports a pass in flight. Callback
    errors are logged and the loop keeps running until ``stop()``.
    """

    def __init__(
        self,
        interval_seconds: float,
        callback: Callable[[], object],
        is_busy: Callable[[], bool] | None = None,
        on_result: Callable[[bool], None] | None = None,
    ) -> None:
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._is_busy = is_busy or (lambda: False)
        self._on_result = on_result
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        if self.interval_seconds <= 0 or self.running:
            return False
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="portfolio-refresh", daemon=True)
        self._thread.start()
        LOGGER.info("auto refresh started: interval_s=%s", self.interval_seconds)
        return True

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def tick(self) -> bool:
        """Run one refresh unless busy; returns whether the callback ran."""
        if self._is_busy():
            LOGGER.info("auto refresh skipped: pass in flight")
            return False
        try:
            self._callback()
        except Exception:
            LOGGER.exception("auto refresh failed")
            self._report(False)
            return True
        self._report(True)
        return True

    def _report(self, success: bool) -> None:
        if self._on_result is not None:
            self._on_result(success)

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.tick()
