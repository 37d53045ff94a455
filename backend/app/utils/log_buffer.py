"""
In-memory log buffer for search and probe activity.

Keeps the last N log lines so the UI can show recent searches and probing
rounds without reading a log file. Append and retrieval are thread-safe.
"""
from __future__ import annotations

import logging
import os
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional


@dataclass
class LogEntry:
    timestamp: datetime
    level: str
    message: str

    def format(self) -> str:
        ts = self.timestamp.strftime("%H:%M:%S")
        return f"[{ts}] [{self.level}] {self.message}"


class LogBuffer:
    """Thread-safe circular buffer for log entries."""

    def __init__(self, max_lines: int = 200) -> None:
        self._max_lines = max(10, min(5000, max_lines))
        self._buffer: deque[LogEntry] = deque(maxlen=self._max_lines)
        self._lock = threading.Lock()

    @property
    def max_lines(self) -> int:
        return self._max_lines

    def append(self, level: str, message: str) -> None:
        entry = LogEntry(timestamp=datetime.now(timezone.utc), level=level.upper(), message=message)
        with self._lock:
            self._buffer.append(entry)

    def get_lines(self, count: Optional[int] = None) -> List[str]:
        """Get formatted log lines, most recent last."""
        with self._lock:
            entries = list(self._buffer)
        if count is not None:
            entries = entries[-count:] if count > 0 else []
        return [e.format() for e in entries]

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}


class LogBufferHandler(logging.Handler):
    """A logging handler that writes to a LogBuffer."""

    def __init__(self, buffer: LogBuffer, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _LEVEL_NAMES.get(record.levelno, "INFO")
            self._buffer.append(level, f"[{record.name}] {record.getMessage()}")
        except Exception:
            self.handleError(record)


_default_max_lines = int(os.environ.get("LOG_BUFFER_MAX_LINES", "200"))

# Process-wide buffer for gateway activity
activity_logs = LogBuffer(max_lines=_default_max_lines)


def install_log_capture(loggers: Iterable[str], level: int = logging.INFO, buffer: Optional[LogBuffer] = None) -> LogBufferHandler:
    """Attach a LogBufferHandler to each named logger (idempotent per buffer)."""
    target = buffer or activity_logs
    handler = LogBufferHandler(target, level=level)
    for name in loggers:
        lg = logging.getLogger(name)
        if not any(isinstance(h, LogBufferHandler) and h._buffer is target for h in lg.handlers):
            lg.addHandler(handler)
    return handler
