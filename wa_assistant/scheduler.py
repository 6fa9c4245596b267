"""
Poll -> act -> sleep loops with an explicit stop token.

Shutdown is "set the event, wait for the loop to return": the current step
always runs to completion, the sleep between steps is interrupted.
"""
from __future__ import annotations

import logging
import signal
import threading
from typing import Callable, Optional

log = logging.getLogger(__name__)


class PollingLoop:
    def __init__(self, name: str, step: Callable[[], object], interval: float,
                 stop: Optional[threading.Event] = None):
        self.name = name
        self.step = step
        self.interval = interval
        self.stop = stop or threading.Event()
        self.iterations = 0

    def run(self) -> None:
        log.info(f"{self.name} loop started (interval={self.interval}s)")
        while not self.stop.is_set():
            try:
                self.step()
            except Exception as e:
                # One bad iteration never ends the loop
                log.exception(f"{self.name} loop error: {e}")
            self.iterations += 1
            self.stop.wait(self.interval)
        log.info(f"{self.name} loop stopped")

    def cancel(self) -> None:
        self.stop.set()


def install_signal_handlers(stop: threading.Event) -> None:
    """SIGINT/SIGTERM set the stop event. Main thread only."""
    def _handler(signum, _frame):
        log.info(f"Received {signal.Signals(signum).name}, shutting down")
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
