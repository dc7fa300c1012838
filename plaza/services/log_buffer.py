"""
plaza.services.log_buffer — In-Memory Ring Buffer for Admin Log Viewing
========================================================================

A thread-safe ring buffer that plugs into Python's ``logging`` framework.
Admins read it through ``GET /api/admin/logs`` to see recent moderation
and login activity without shell access.  Nothing is persisted; the buffer
empties on restart.  Durable records of admin actions live in
``admin_log``.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

DEFAULT_CAPACITY = 1000
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_buffer: LogBuffer | None = None
_lock = threading.Lock()


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: str
    level: str
    logger: str
    message: str


class LogBuffer:
    """Bounded deque of :class:`LogEntry` guarded by a lock."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def get_entries(self, tail: int = 200, level: str | None = None) -> list[dict[str, str]]:
        """Return the most recent *tail* entries at *level* or above."""
        min_level = getattr(logging, level.upper(), 0) if level else 0
        with self._lock:
            snapshot = list(self._entries)
        results = [
            asdict(e)
            for e in snapshot
            if not min_level or getattr(logging, e.level, 0) >= min_level
        ]
        return results[-tail:] if tail else results

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)


class RingBufferHandler(logging.Handler):
    """Logging handler that appends records to a :class:`LogBuffer`."""

    def __init__(self, buffer: LogBuffer, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._buffer.append(LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                level=record.levelname,
                logger=record.name,
                message=self.format(record),
            ))
        except Exception:
            self.handleError(record)


def get_buffer() -> LogBuffer:
    """Return (or create) the process-global log buffer."""
    global _buffer
    if _buffer is None:
        with _lock:
            if _buffer is None:
                _buffer = LogBuffer()
    return _buffer


def install_handler(level: int = logging.INFO) -> RingBufferHandler:
    """Attach the ring-buffer handler to the ``plaza`` logger (idempotent)."""
    target = logging.getLogger("plaza")
    for h in target.handlers:
        if isinstance(h, RingBufferHandler):
            return h
    handler = RingBufferHandler(get_buffer(), level=level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    target.addHandler(handler)
    if target.level == logging.NOTSET or target.level > level:
        target.setLevel(level)
    return handler


def get_logs(tail: int = 200, level: str | None = None) -> list[dict[str, str]]:
    if level is not None and level.upper() not in VALID_LEVELS:
        raise ValueError(f"Invalid level: {level}. Must be one of {VALID_LEVELS}")
    return get_buffer().get_entries(tail=tail, level=level)
