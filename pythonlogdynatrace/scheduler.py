"""Batching export engine: owns the buffer, the flush timer and the transport."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

from .buffer import BatchBuffer
from .clients import DynatraceClient, PayloadEncodingError
from .config import ExportConfig
from .metrics import ExportMetrics
from .models import LogEntry, create_log_entry
from .utils import RecurringTimer


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    CLOSED = "closed"


class SchedulerStateError(RuntimeError):
    """Raised when the scheduler is started outside the IDLE state."""

    pass


class ExportScheduler:
    """Buffers log entries and exports them in batches.

    A flush is triggered by the recurring timer, by the buffer reaching
    ``max_batch_size`` or explicitly. Buffer mutation happens on the calling
    thread; the HTTP request runs on a single worker thread and is never
    awaited by producers. At most one export is in flight, so a failed batch
    is back at the head of the buffer before the next batch is extracted.

    Example:
        ```python
        with ExportScheduler(load_config()) as scheduler:
            scheduler.log("info", "service started", {"version": "1.2.0"})
        ```
    """

    def __init__(
        self,
        config: ExportConfig,
        client: Optional[DynatraceClient] = None,
        on_dead_letter: Optional[Callable[[List[LogEntry]], None]] = None,
    ):
        """Initialize the scheduler. The timer is not started.

        Args:
            config: Snapshot of the export configuration
            client: Transport, a DynatraceClient for ``config`` when omitted
            on_dead_letter: Called with a batch dropped after ``max_retries``
                consecutive failures or because it cannot be encoded
        """
        self.config = config
        self.client = client or DynatraceClient(config)
        self.on_dead_letter = on_dead_letter
        self.buffer = BatchBuffer()
        self.metrics = ExportMetrics()
        self.logger = logging.getLogger(self.__class__.__name__)

        self._state = SchedulerState.IDLE
        self._timer: Optional[RecurringTimer] = None
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="dynatrace-export"
        )
        self._condition = threading.Condition()
        self._in_flight = False
        self._consecutive_failures = 0
        self._futures = set()
        self._futures_lock = threading.Lock()
        self._warned_closed = False

        if not config.export_enabled:
            self.logger.warning(
                "DT_ENDPOINT or DT_API_TOKEN not set, log batches will be discarded"
            )

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self.buffer)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def log(
        self, level: str, message: Any, metadata: Optional[Mapping[str, Any]] = None
    ) -> None:
        """Buffer one log entry. Never raises and never waits on the network."""
        try:
            entry = create_log_entry(level, message, self.config, metadata)
            self.append(entry)
        except Exception as e:
            self.logger.error(f"Failed to buffer log entry: {e}", exc_info=True)

    def append(self, entry: LogEntry) -> None:
        """Add an entry and flush right away if a full batch is waiting."""
        size = self.buffer.append(entry)

        if self._state is SchedulerState.CLOSED:
            if not self._warned_closed:
                self._warned_closed = True
                self.logger.warning(
                    "Log entry buffered after close, it is only exported by an explicit flush()"
                )
            return

        if size >= self.config.max_batch_size:
            try:
                self.flush(trigger="size")
            except Exception as e:
                self.logger.error(f"Size-triggered flush failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Flush path
    # ------------------------------------------------------------------

    def flush(self, block: bool = False, trigger: str = "manual") -> Optional[Future]:
        """Extract one batch and hand it to the transport.

        Args:
            block: Export on the calling thread, first waiting (up to the
                request timeout) for an export already in flight
            trigger: Label recorded in metrics: manual, size, timer or close

        Returns:
            Future of the background export, or None when nothing was
            submitted (empty buffer, export in flight, discarded batch or
            blocking export)
        """
        if not len(self.buffer):
            return None

        with self._condition:
            if self._in_flight:
                if not block:
                    self.logger.debug("Export already in flight, deferring flush")
                    return None
                idle = self._condition.wait_for(
                    lambda: not self._in_flight, timeout=self.config.request_timeout
                )
                if not idle:
                    self.logger.warning(
                        "Export still in flight, skipping blocking flush"
                    )
                    return None

            batch = self.buffer.extract_batch(self.config.max_batch_size)
            if not batch:
                return None
            self.metrics.record_trigger(trigger)

            if not self.config.export_enabled:
                self.metrics.record_discard(len(batch))
                self.logger.warning(
                    f"Export not configured, discarding batch of {len(batch)} logs"
                )
                return None

            self._in_flight = True

        if block or self._state is SchedulerState.CLOSED:
            self._export(batch)
            return None

        try:
            future = self._executor.submit(self._export, batch)
        except RuntimeError:
            # executor shut down by a concurrent close()
            self._export(batch)
            return None

        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(self._forget_future)
        return future

    def _forget_future(self, future: Future) -> None:
        with self._futures_lock:
            self._futures.discard(future)

    def _export(self, batch: List[LogEntry]) -> None:
        """Send one batch; requeue it at the head or dead-letter it on failure."""
        dead_letter = None
        reason = None
        try:
            try:
                payload = [entry.to_ingest_format(self.config) for entry in batch]
                delivered = self.client.send_logs(payload)
            except PayloadEncodingError as e:
                delivered = False
                reason = str(e)
            except Exception as e:
                self.logger.error(
                    f"Unexpected error exporting log batch: {e}", exc_info=True
                )
                delivered = False

            with self._condition:
                if delivered:
                    self._consecutive_failures = 0
                    self.metrics.record_success(len(batch))
                elif reason is not None:
                    # the same entries would fail to encode on every retry
                    self.metrics.record_failure(len(batch), requeued=False)
                    dead_letter = batch
                elif self._retries_exhausted():
                    self._consecutive_failures = 0
                    self.metrics.record_failure(len(batch), requeued=False)
                    dead_letter = batch
                    reason = f"{self.config.max_retries} failed export attempts"
                else:
                    self.buffer.requeue_front(batch)
                    self.metrics.record_failure(len(batch), requeued=True)
        finally:
            with self._condition:
                self._in_flight = False
                self._condition.notify_all()

        if delivered:
            self.logger.info(
                f"Batch of {len(batch)} logs exported to Dynatrace successfully"
            )
            self._flush_backlog()
        elif dead_letter is not None:
            self._dead_letter(dead_letter, reason)
            self._flush_backlog()
        else:
            self.logger.debug(f"Requeued batch of {len(batch)} logs for retry")

    def _flush_backlog(self) -> None:
        """Re-run the size trigger skipped while this export was in flight.

        Not called after a requeue, so a failing endpoint is retried once per
        tick rather than in a tight loop.
        """
        if self._state is SchedulerState.CLOSED:
            return
        if len(self.buffer) >= self.config.max_batch_size:
            self.flush(trigger="size")

    def _retries_exhausted(self) -> bool:
        self._consecutive_failures += 1
        return bool(self.config.max_retries) and (
            self._consecutive_failures >= self.config.max_retries
        )

    def _dead_letter(self, batch: List[LogEntry], reason: str) -> None:
        self.logger.error(f"Dropping batch of {len(batch)} logs: {reason}")
        if self.on_dead_letter is None:
            return
        try:
            self.on_dead_letter(batch)
        except Exception as e:
            self.logger.error(f"Dead-letter callback failed: {e}", exc_info=True)

    def wait_for_exports(self, timeout: Optional[float] = None) -> bool:
        """Wait for background exports submitted so far.

        Returns:
            bool: True if all of them finished within ``timeout``
        """
        with self._futures_lock:
            pending = list(self._futures)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def schedule_timer(self, interval_ms: Optional[int] = None) -> None:
        """Start the recurring flush timer and move to RUNNING.

        Raises:
            SchedulerStateError: If the scheduler is not IDLE
        """
        with self._condition:
            if self._state is not SchedulerState.IDLE:
                raise SchedulerStateError(
                    f"Cannot start scheduler in state {self._state.value}"
                )
            interval = (interval_ms or self.config.flush_interval_ms) / 1000.0
            self._timer = RecurringTimer(
                interval, self._on_tick, name="dynatrace-flush-timer"
            )
            self._timer.start()
            self._state = SchedulerState.RUNNING
        self.logger.debug(f"Flush timer started with interval {interval:.3f}s")

    def start(self) -> "ExportScheduler":
        self.schedule_timer()
        return self

    def _on_tick(self) -> None:
        self.flush(trigger="timer")

    def close(self) -> None:
        """Cancel the timer and make one final, blocking flush attempt.

        Idempotent. Remaining entries beyond one batch stay in the buffer.
        """
        with self._condition:
            if self._state is SchedulerState.CLOSED:
                return
            self._state = SchedulerState.CLOSED

        if self._timer is not None:
            self._timer.cancel(timeout=self.config.request_timeout)

        self.flush(block=True, trigger="close")
        self._executor.shutdown(wait=False)

        with self._condition:
            idle = not self._in_flight
        if idle:
            self.client.close()

        remaining = len(self.buffer)
        if remaining:
            self.logger.warning(f"Closed with {remaining} logs still buffered")
        self.logger.info(f"Export scheduler closed: {self.metrics.snapshot()}")

    def __enter__(self) -> "ExportScheduler":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
