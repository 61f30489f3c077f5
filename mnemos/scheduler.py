"""
mnemos.scheduler — Cancellable periodic background task.

    task = PeriodicTask(300.0, service.consolidate, name="consolidate")
    task.start()
    ...
    task.cancel()   # safe to call any number of times

The loop sleeps on a ``threading.Event`` so ``cancel()`` wakes it
immediately.  An exception raised by one tick is logged with its
traceback and the next tick runs as scheduled.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)


class PeriodicTask:
    """Run *func* every *interval_s* seconds on a daemon thread.

    Parameters
    ----------
    interval_s:
        Seconds between the end of one tick and the start of the next.
    func:
        Zero-argument callable.
    name:
        Used for the thread name and in log messages.
    """

    def __init__(
        self,
        interval_s: float,
        func: Callable[[], Any],
        name: str = "periodic",
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.interval_s = interval_s
        self.func = func
        self.name = name
        self.ticks = 0
        self.failures = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "PeriodicTask":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(
            target=self._run, name=f"mnemos-{self.name}", daemon=True
        )
        self._thread.start()
        log.debug("Started periodic task %s (every %.1fs)", self.name, self.interval_s)
        return self

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            self.tick()

    def tick(self) -> None:
        """Run *func* once, logging instead of raising on failure."""
        self.ticks += 1
        try:
            self.func()
        except Exception:
            self.failures += 1
            log.exception("Periodic task %s failed", self.name, extra={"task": self.name})

    def cancel(self, timeout: Optional[float] = 1.0) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        log.debug("Cancelled periodic task %s", self.name)

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
