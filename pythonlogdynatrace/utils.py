"""Utility helpers for background scheduling."""

import logging
import threading
from typing import Callable, Optional


class TimerError(Exception):
    """Exception raised when a timer is used outside its lifecycle."""

    pass


class RecurringTimer:
    """Cancellable timer that calls a function every ``interval`` seconds."""

    def __init__(self, interval: float, function: Callable[[], None], name: str = "RecurringTimer"):
        """
        Initialize the timer.

        Args:
            interval: Seconds between two ticks
            function: Callable invoked on each tick, with no arguments
            name: Name given to the background thread
        """
        self.interval = interval
        self.function = function
        self.name = name
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Start ticking in a daemon thread.

        Raises:
            TimerError: If the timer was already started or cancelled
        """
        if self._thread is not None:
            raise TimerError("Timer already started")
        if self._cancelled.is_set():
            raise TimerError("Timer was cancelled")
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval):
            try:
                self.function()
            except Exception as e:
                self.logger.error(f"Error in timer tick: {e}", exc_info=True)

    def cancel(self, timeout: Optional[float] = None) -> None:
        """
        Stop ticking. No tick starts after this returns.

        A tick already running in the timer thread is waited for, up to
        ``timeout`` seconds. Calling cancel from inside a tick does not join.

        Args:
            timeout: Maximum seconds to wait for the running tick
        """
        self._cancelled.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
