"""Batching log exporter for the Dynatrace logs ingest API."""

from .buffer import BatchBuffer
from .clients import DynatraceClient, ExportError
from .config import ConfigurationError, ExportConfig, load_config
from .handlers import DynatraceHandler
from .metrics import ExportMetrics
from .middleware import HttpLoggingMiddleware, classify, format_access_line
from .models import LogEntry, create_log_entry, normalize_level
from .scheduler import ExportScheduler, SchedulerState, SchedulerStateError

__all__ = [
    "BatchBuffer",
    "ConfigurationError",
    "DynatraceClient",
    "DynatraceHandler",
    "ExportConfig",
    "ExportError",
    "ExportMetrics",
    "ExportScheduler",
    "HttpLoggingMiddleware",
    "LogEntry",
    "SchedulerState",
    "SchedulerStateError",
    "classify",
    "create_log_entry",
    "format_access_line",
    "load_config",
    "normalize_level",
]
