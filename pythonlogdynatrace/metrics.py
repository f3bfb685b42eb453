"""Thread-safe counters describing export activity."""

import threading
import time


class ExportMetrics:
    """Collects counters about batches sent, failed, discarded and dropped."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._batches_sent = 0
        self._entries_sent = 0
        self._failed_attempts = 0
        self._entries_requeued = 0
        self._entries_discarded = 0
        self._entries_dead_lettered = 0
        self._flush_triggers = {"size": 0, "timer": 0, "manual": 0, "close": 0}
        self._start_time = time.monotonic()

    def record_trigger(self, trigger: str) -> None:
        with self._lock:
            self._flush_triggers[trigger] = self._flush_triggers.get(trigger, 0) + 1

    def record_success(self, batch_size: int) -> None:
        with self._lock:
            self._batches_sent += 1
            self._entries_sent += batch_size

    def record_failure(self, batch_size: int, requeued: bool) -> None:
        """Record one failed export attempt.

        Args:
            batch_size: Number of entries in the failed batch
            requeued: False when the batch was dead-lettered instead
        """
        with self._lock:
            self._failed_attempts += 1
            if requeued:
                self._entries_requeued += batch_size
            else:
                self._entries_dead_lettered += batch_size

    def record_discard(self, batch_size: int) -> None:
        with self._lock:
            self._entries_discarded += batch_size

    def snapshot(self) -> dict:
        """Return a point-in-time copy of all counters."""
        with self._lock:
            return {
                "batches_sent": self._batches_sent,
                "entries_sent": self._entries_sent,
                "failed_attempts": self._failed_attempts,
                "entries_requeued": self._entries_requeued,
                "entries_discarded": self._entries_discarded,
                "entries_dead_lettered": self._entries_dead_lettered,
                "flush_triggers": dict(self._flush_triggers),
                "uptime_seconds": time.monotonic() - self._start_time,
            }
