"""Periodic tick sources driving live metering and playback progress."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Ticker(ABC):
    """Calls a callback periodically until stopped."""

    @abstractmethod
    def start(self, callback: Callable[[], None]) -> None:
        """Begin delivering ticks to callback."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering ticks. Safe to call more than once."""
        ...


class ThreadTicker(Ticker):
    """Ticker backed by a daemon thread waiting on an Event."""

    def __init__(self, interval: float = 0.1, name: str = "TickerThread"):
        self.interval = interval
        self.name = name
        self.stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None

    def start(self, callback: Callable[[], None]) -> None:
        if self.thread and self.thread.is_alive():
            logger.warning(f"{self.name} already running")
            return

        self.stop_event.clear()
        self.thread = threading.Thread(target=self._run, args=(callback,), daemon=True)
        self.thread.name = self.name
        self.thread.start()

    def stop(self) -> None:
        # Not joined: the tick callback may be waiting on a lock held by the caller.
        self.stop_event.set()

    def _run(self, callback: Callable[[], None]) -> None:
        while not self.stop_event.wait(self.interval):
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in {self.name} callback: {e}", exc_info=True)
