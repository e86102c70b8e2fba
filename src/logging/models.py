"""Event log data models: LogLevel, LogComponent, LogEntry."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class LogLevel(Enum):
    """Log levels with numeric values for severity comparison.

    Uses integer values so that severity comparison works correctly.
    String comparison would fail (e.g., "debug" > "critical" lexicographically).
    """

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @property
    def name_str(self) -> str:
        """Get lowercase name for display/serialization."""
        return self.name.lower()


class LogComponent(Enum):
    """Engine components that produce events."""

    # Engine
    SCHEDULER = "scheduler"
    FETCHER = "fetcher"
    DISPATCHER = "dispatcher"
    RECOVERY = "recovery"
    NOTIFIER = "notifier"

    # Infrastructure
    VAULT = "vault"
    REGISTRY = "registry"
    DATABASE = "database"
    STARTUP = "startup"
    CONFIG = "config"


@dataclass
class LogEntry:
    """Structured event log entry.

    Represents a single event with tick/post context, optional error
    details, and timing.  Serialises to JSON, dict and a one-line
    human-readable form.
    """

    # Required fields
    timestamp: datetime
    level: LogLevel
    component: LogComponent
    message: str

    # Context
    tick_id: Optional[str] = None
    post_id: Optional[str] = None

    # Additional data
    data: Dict[str, Any] = field(default_factory=dict)

    # Error details
    error_type: Optional[str] = None

    # Performance
    duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "level_name": self.level.name_str,
            "component": self.component.value,
            "message": self.message,
            "tick_id": self.tick_id,
            "post_id": self.post_id,
            "data": self.data,
            "error_type": self.error_type,
            "duration_ms": self.duration_ms,
        }

    def to_json(self) -> str:
        """Serialize to a JSON line for file logging."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def to_readable(self) -> str:
        """Human-readable one-line format for console output."""
        time_str = self.timestamp.strftime("%H:%M:%S")
        level_indicators = {
            LogLevel.DEBUG: "[DEBUG]",
            LogLevel.INFO: "[INFO]",
            LogLevel.WARNING: "[WARN]",
            LogLevel.ERROR: "[ERROR]",
            LogLevel.CRITICAL: "[CRIT]",
        }
        indicator = level_indicators.get(self.level, "[???]")
        msg = f"{indicator} [{time_str}] [{self.component.value}] {self.message}"
        if self.duration_ms:
            msg += f" ({self.duration_ms}ms)"
        return msg
