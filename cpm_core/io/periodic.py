"""Recurring timer running on its own thread with an owned stop event."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Call an action every interval_s seconds until stopped.

    A failing action is logged and the timer keeps ticking. stop() wakes the
    thread immediately instead of waiting out the interval.
    """

    def __init__(
        self,
        name: str,
        interval_s: float,
        action: Callable[[], None],
        run_immediately: bool = False,
    ):
        """
        Args:
            name: Thread name, also used in log messages
            interval_s: Seconds between ticks
            action: Zero-argument callable run on every tick
            run_immediately: Run one tick as soon as the task starts
        """
        if interval_s <= 0:
            raise ValueError(f"Interval must be positive: {interval_s}")

        self.name = name
        self.interval_s = interval_s
        self.action = action
        self.run_immediately = run_immediately

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"{self.name}: started (every {self.interval_s:.2f}s)")

    def stop(self, timeout: Optional[float] = 2.0):
        """
        Stop ticking and wait for the thread to exit.

        Args:
            timeout: Seconds to wait for the thread, None to wait forever
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self):
        stop_event = self._stop_event
        if self.run_immediately:
            self._tick()
        while not stop_event.wait(self.interval_s):
            self._tick()
        logger.debug(f"{self.name}: stopped after {self.tick_count} ticks")

    def _tick(self):
        self.tick_count += 1
        try:
            self.action()
        except Exception:
            logger.exception(f"{self.name}: tick failed")
