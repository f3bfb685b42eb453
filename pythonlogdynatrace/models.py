"""Data models for log export."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .config import ExportConfig

# Python level names that Dynatrace spells differently
LEVEL_ALIASES = {
    "WARNING": "WARN",
    "FATAL": "CRITICAL",
}


def normalize_level(level: str) -> str:
    """Uppercase a level name and map Python spellings onto ingest ones."""
    name = str(level).strip().upper() or "INFO"
    return LEVEL_ALIASES.get(name, name)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class LogEntry:
    """Represents one structured log record waiting to be exported."""

    level: str
    content: str
    timestamp: int = field(default_factory=now_ms)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_ingest_format(self, config: ExportConfig) -> Dict[str, Any]:
        """Convert to the object shape expected by the logs ingest API."""
        return {
            "timestamp": self.timestamp,
            "status": self.level,
            "loglevel": self.level,
            "environment": config.environment,
            "appname": config.app_name,
            "service": config.service_name,
            "content": self.content,
            "severity": self.level,
            "segment": config.segment,
            "hostname": config.hostname,
            "attributes": dict(self.attributes),
        }


def create_log_entry(
    level: str,
    message: Any,
    config: ExportConfig,
    metadata: Optional[Mapping[str, Any]] = None,
) -> LogEntry:
    """Create a LogEntry with the configured defaults merged under metadata."""
    attributes = config.default_attributes()
    if metadata:
        attributes.update(metadata)
    return LogEntry(
        level=normalize_level(level),
        content=str(message),
        attributes=attributes,
    )
