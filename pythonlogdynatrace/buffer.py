"""In-memory batch buffer with head requeue for failed exports."""

import threading
from collections import deque
from dataclasses import replace
from typing import Iterable, List

from .models import LogEntry


class BatchBuffer:
    """Thread-safe FIFO of pending log entries.

    Extraction always takes the oldest entries. A batch that failed to export
    goes back to the head so it is retried before anything appended since.
    The buffer is unbounded; ``len()`` is the only signal of growth.
    """

    def __init__(self):
        self._entries = deque()
        self._lock = threading.Lock()
        self._last_timestamp = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entry: LogEntry) -> int:
        """Add an entry at the tail and return the new buffer length.

        An entry older than the last one appended takes that timestamp, so
        timestamps never decrease from head to tail.
        """
        with self._lock:
            if entry.timestamp < self._last_timestamp:
                entry = replace(entry, timestamp=self._last_timestamp)
            self._last_timestamp = entry.timestamp
            self._entries.append(entry)
            return len(self._entries)

    def extract_batch(self, max_batch_size: int) -> List[LogEntry]:
        """Remove and return up to ``max_batch_size`` oldest entries, in order."""
        with self._lock:
            count = min(len(self._entries), max_batch_size)
            return [self._entries.popleft() for _ in range(count)]

    def requeue_front(self, entries: Iterable[LogEntry]) -> None:
        """Put entries back at the head, keeping their relative order."""
        with self._lock:
            # extendleft reverses its input
            self._entries.extendleft(reversed(list(entries)))

    def clear(self) -> List[LogEntry]:
        """Drop everything and return what was dropped."""
        with self._lock:
            dropped = list(self._entries)
            self._entries.clear()
            return dropped
