"""Export configuration loaded once from environment variables."""

import os
import socket
from dataclasses import dataclass
from typing import Mapping, Optional

# Configuration Constants
DEFAULT_FLUSH_INTERVAL_MS = 5000
DEFAULT_MAX_BATCH_SIZE = 50
DEFAULT_MAX_RETRIES = 0
DEFAULT_REQUEST_TIMEOUT = 10.0
INGEST_URL_TEMPLATE = "https://{endpoint_id}.live.dynatrace.com/api/v2/logs/ingest"


class ConfigurationError(Exception):
    """Custom exception for configuration-related errors."""

    pass


def _default_hostname() -> str:
    try:
        return socket.gethostname() or "unknown"
    except OSError:
        return "unknown"


TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


def _get_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean for {key}: {raw!r}")


@dataclass(frozen=True)
class ExportConfig:
    """Immutable snapshot of everything the exporter needs.

    ``max_retries`` of 0 means a failing batch is requeued forever.
    """

    endpoint_id: Optional[str] = None
    api_token: Optional[str] = None
    ingest_url: Optional[str] = None
    environment: str = "unknown"
    app_name: str = "Python App"
    service_name: str = "python-app"
    hostname: str = "unknown"
    segment: str = "default"
    flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    verify_tls: bool = True

    def __post_init__(self):
        if self.flush_interval_ms <= 0:
            raise ConfigurationError(
                f"flush_interval_ms must be positive, got {self.flush_interval_ms}"
            )
        if self.max_batch_size <= 0:
            raise ConfigurationError(
                f"max_batch_size must be positive, got {self.max_batch_size}"
            )
        if self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must not be negative, got {self.max_retries}"
            )
        if self.request_timeout <= 0:
            raise ConfigurationError(
                f"request_timeout must be positive, got {self.request_timeout}"
            )

    @property
    def url(self) -> Optional[str]:
        """Ingestion endpoint URL, or None when no target is configured."""
        if self.ingest_url:
            return self.ingest_url
        if self.endpoint_id:
            return INGEST_URL_TEMPLATE.format(endpoint_id=self.endpoint_id)
        return None

    @property
    def export_enabled(self) -> bool:
        return bool(self.url and self.api_token)

    @property
    def flush_interval(self) -> float:
        """Flush interval in seconds."""
        return self.flush_interval_ms / 1000.0

    def default_attributes(self) -> dict:
        """Attributes baked into every entry before caller metadata is merged."""
        return {
            "environment": self.environment,
            "appname": self.app_name,
            "service": self.service_name,
            "hostname": self.hostname,
            "segment": self.segment,
        }


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid integer for {key}: {raw!r}")


def _get_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid number for {key}: {raw!r}")


def load_config(environ: Optional[Mapping[str, str]] = None) -> ExportConfig:
    """Build an ExportConfig from environment variables.

    Args:
        environ: Mapping to read from, ``os.environ`` when omitted

    Returns:
        ExportConfig: Snapshot of the current configuration

    Raises:
        ConfigurationError: If a numeric or boolean option is malformed or
            a numeric one is out of range
    """
    env = os.environ if environ is None else environ
    return ExportConfig(
        endpoint_id=env.get("DT_ENDPOINT") or None,
        api_token=env.get("DT_API_TOKEN") or None,
        ingest_url=env.get("DT_INGEST_URL") or None,
        environment=env.get("DT_ENVIRONMENT") or ExportConfig.environment,
        app_name=env.get("APP_NAME") or ExportConfig.app_name,
        service_name=env.get("DT_SERVICE_NAME") or ExportConfig.service_name,
        hostname=env.get("HOSTNAME") or _default_hostname(),
        segment=env.get("SEGMENT") or ExportConfig.segment,
        flush_interval_ms=_get_int(
            env, "DT_FLUSH_INTERVAL_MS", DEFAULT_FLUSH_INTERVAL_MS
        ),
        max_batch_size=_get_int(env, "DT_MAX_BATCH_SIZE", DEFAULT_MAX_BATCH_SIZE),
        max_retries=_get_int(env, "DT_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        request_timeout=_get_float(
            env, "DT_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT
        ),
        verify_tls=_get_bool(env, "DT_VERIFY_TLS", True),
    )
