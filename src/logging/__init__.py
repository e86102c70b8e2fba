"""Structured event log for the publishing engine."""
from src.logging.models import LogLevel, LogComponent, LogEntry
from src.logging.event_logger import EventLogger, init_event_logger, get_event_logger

__all__ = [
    "LogLevel", "LogComponent", "LogEntry",
    "EventLogger", "init_event_logger", "get_event_logger",
]
