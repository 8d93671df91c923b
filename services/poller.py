"""Fixed-interval background refresh."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Poller:
    """Runs ``target`` immediately, then every ``interval`` seconds, until stopped.

    The loop waits on an event rather than sleeping so ``stop()`` takes effect
    at once. A call already in progress is not interrupted.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        target: Callable[[], object],
        run_immediately: bool = True,
    ) -> None:
        if interval <= 0:
            raise ValueError("Poll interval must be positive.")
        self.name = name
        self.interval = interval
        self._target = target
        self._run_immediately = run_immediately
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None

    def _run(self) -> None:
        if self._run_immediately:
            self._tick()
        while not self._stop.wait(self.interval):
            self._tick()

    def _tick(self) -> None:
        try:
            self._target()
        except Exception:  # noqa: BLE001 - keep polling after an unexpected failure
            logger.exception("Poll target failed", extra={"reason": self.name})
