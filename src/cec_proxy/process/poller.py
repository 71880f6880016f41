"""Cancellable periodic background thread."""

from __future__ import annotations

import threading
from collections.abc import Callable

from cec_proxy.logging_abstraction import get_logger

__all__ = ["PeriodicPoller"]

logger = get_logger(__name__)


class PeriodicPoller:
    """Call ``action`` every ``interval`` seconds on a daemon thread until stopped.

    The first call happens immediately after ``start()``. Exceptions from
    ``action`` are logged and polling continues.
    """

    lp: str = "poller:"

    def __init__(self, name: str, action: Callable[[], object], interval: float) -> None:
        if interval <= 0:
            msg = f"poll interval must be positive, got {interval}"
            raise ValueError(msg)
        self.name: str = name
        self.interval: float = interval
        self._action = action
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._stop_event.clear()
            thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
            self._thread = thread
            thread.start()
        logger.debug("%s %s started (every %ss)", self.lp, self.name, self.interval)

    def stop(self, timeout: float | None = None) -> None:
        with self._lock:
            if not self._thread:
                return
            self._stop_event.set()
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=timeout if timeout is not None else self.interval * 2)
            self._thread = None
        logger.debug("%s %s stopped", self.lp, self.name)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._action()
            except Exception:
                logger.exception("%s %s action failed", self.lp, self.name)
            if self._stop_event.wait(self.interval):
                break
