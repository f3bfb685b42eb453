"""HTTP access logging: status-code severity and a WSGI middleware."""

import logging
import time
from typing import Any, Callable, Iterable, Optional

from .scheduler import ExportScheduler


def classify(status_code: int) -> str:
    """Map an HTTP status code to a log level.

    5xx is ERROR and 4xx is WARN. Everything else, including codes of 600
    and above, is INFO.
    """
    if 500 <= status_code <= 599:
        return "ERROR"
    if 400 <= status_code <= 499:
        return "WARN"
    return "INFO"


def format_access_line(
    method: str,
    path: str,
    http_version: str,
    status_code: int,
    status_text: str,
    duration_ms: int,
) -> str:
    """Build ``"GET /path HTTP/1.1" 200 OK 12ms``."""
    return (
        f'"{method} {path} HTTP/{http_version}" '
        f"{status_code} {status_text} {duration_ms}ms"
    )


def _original_url(environ: dict) -> str:
    path = (environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")) or "/"
    query = environ.get("QUERY_STRING")
    return f"{path}?{query}" if query else path


def _http_version(environ: dict) -> str:
    protocol = environ.get("SERVER_PROTOCOL", "HTTP/1.1")
    return protocol.split("/", 1)[1] if "/" in protocol else protocol


class HttpLoggingMiddleware:
    """WSGI middleware that logs one access line per request.

    The line is emitted once the response iterable is closed, with a level
    chosen by ``classify``. An exception raised by the wrapped app is logged
    as a 500 and re-raised.
    """

    def __init__(self, app: Callable, sink: ExportScheduler):
        self.app = app
        self.sink = sink
        self.logger = logging.getLogger(self.__class__.__name__)

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        start = time.monotonic()
        captured = {"status": None}

        def wrapped_start_response(status: str, headers, exc_info=None):
            captured["status"] = status
            return start_response(status, headers, exc_info)

        try:
            result = self.app(environ, wrapped_start_response)
        except Exception:
            self._log(environ, "500 Internal Server Error", start)
            raise
        return _ClosingIterator(
            result, lambda: self._log(environ, captured["status"], start)
        )

    def _log(self, environ: dict, status: Optional[str], start: float) -> None:
        duration_ms = int((time.monotonic() - start) * 1000)
        code, _, text = (status or "500 Internal Server Error").partition(" ")
        try:
            status_code = int(code)
        except ValueError:
            self.logger.warning(f"Unparseable response status: {status!r}")
            status_code = 500
        line = format_access_line(
            environ.get("REQUEST_METHOD", "GET"),
            _original_url(environ),
            _http_version(environ),
            status_code,
            text,
            duration_ms,
        )
        self.sink.log(classify(status_code), line)


class _ClosingIterator:
    """Wraps a WSGI response so a callback runs when the server closes it."""

    def __init__(self, iterable: Iterable[bytes], on_close: Callable[[], Any]):
        self._iterable = iterable
        self._on_close = on_close

    def __iter__(self):
        return iter(self._iterable)

    def close(self) -> None:
        try:
            close = getattr(self._iterable, "close", None)
            if close is not None:
                close()
        finally:
            self._on_close()
