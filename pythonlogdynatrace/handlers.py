"""Python logging handler that feeds records into an ExportScheduler."""

import logging
from typing import Any, Dict

from .scheduler import ExportScheduler

# Standard LogRecord attributes that should not be treated as metadata
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "metadata",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)

# Loggers used by the export path itself; shipping their records would feed
# every export back into the buffer.
INTERNAL_LOGGERS = frozenset(
    {
        "ExportScheduler",
        "DynatraceClient",
        "RecurringTimer",
        "DynatraceHandler",
        "HttpLoggingMiddleware",
        "urllib3",
        "requests",
    }
)


class DynatraceHandler(logging.Handler):
    """Logging handler that ships records to Dynatrace through a scheduler.

    Metadata comes from ``extra={"metadata": {...}}`` plus any simple-typed
    extra attributes set on the record.

    Example:
        ```python
        scheduler = ExportScheduler(load_config()).start()
        logging.getLogger().addHandler(DynatraceHandler(scheduler))
        ```
    """

    def __init__(
        self,
        scheduler: ExportScheduler,
        level: int = logging.NOTSET,
        owns_scheduler: bool = True,
    ):
        """Initialize the handler.

        Args:
            scheduler: Scheduler that buffers and exports the entries
            level: Minimum level handled
            owns_scheduler: Close the scheduler when the handler is closed
        """
        super().__init__(level)
        self.scheduler = scheduler
        self.owns_scheduler = owns_scheduler

    @staticmethod
    def is_internal(record: logging.LogRecord) -> bool:
        return record.name.split(".", 1)[0] in INTERNAL_LOGGERS

    def build_metadata(self, record: logging.LogRecord) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"logger": record.name}

        for key, value in record.__dict__.items():
            if key not in _STANDARD_LOGRECORD_ATTRS and isinstance(
                value, (str, int, float, bool)
            ):
                metadata[key] = value

        explicit = getattr(record, "metadata", None)
        if isinstance(explicit, dict):
            metadata.update(explicit)

        if record.exc_info and record.exc_info[0] is not None:
            metadata["exc_type"] = record.exc_info[0].__name__
        return metadata

    def emit(self, record: logging.LogRecord) -> None:
        if self.is_internal(record):
            return
        try:
            message = self.format(record)
            self.scheduler.log(record.levelname, message, self.build_metadata(record))
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self.scheduler.flush()

    def close(self) -> None:
        try:
            if self.owns_scheduler:
                self.scheduler.close()
        finally:
            super().close()
