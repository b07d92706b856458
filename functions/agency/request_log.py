"""
Request logging with lightweight in-process analytics for the monitoring route.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass
class LogEntry:
    level: str
    message: str
    context: dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"LOG_{uuid.uuid4().hex[:12]}")
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class RequestLog:
    """Forwards entries to `logging` and keeps counters for analytics()."""

    def __init__(self, max_entries: int = 1000, log: logging.Logger | None = None):
        self._log = log or logger
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._counts = {"INFO": 0, "WARN": 0, "ERROR": 0, "API": 0}
        self._total_response_ms = 0.0
        self._lock = threading.Lock()

    def _record(self, level: str, message: str, context: dict) -> LogEntry:
        entry = LogEntry(level=level, message=message, context=context)
        with self._lock:
            self._entries.append(entry)
            self._counts[level] = self._counts.get(level, 0) + 1
        return entry

    def info(self, message: str, **context) -> LogEntry:
        self._log.info("%s %s", message, context or "")
        return self._record("INFO", message, context)

    def warn(self, message: str, **context) -> LogEntry:
        self._log.warning("%s %s", message, context or "")
        return self._record("WARN", message, context)

    def error(self, message: str, error: BaseException | None = None, **context) -> LogEntry:
        if error is not None:
            context["error"] = str(error)
        self._log.error("%s %s", message, context or "")
        return self._record("ERROR", message, context)

    def api(
        self,
        method: str,
        url: str,
        status: int,
        response_time_ms: float,
        **context,
    ) -> LogEntry:
        message = f"{method} {url} - {status} ({response_time_ms:.0f}ms)"
        self._log.info(message)
        with self._lock:
            self._total_response_ms += response_time_ms
        return self._record(
            "API",
            message,
            {
                "method": method,
                "url": url,
                "status": status,
                "response_time_ms": response_time_ms,
                **context,
            },
        )

    def analytics(self) -> dict:
        with self._lock:
            api_count = self._counts["API"]
            average = round(self._total_response_ms / api_count) if api_count else 0
            return {
                "summary": {
                    "total_logs": sum(self._counts.values()),
                    "error_count": self._counts["ERROR"],
                    "warning_count": self._counts["WARN"],
                    "info_count": self._counts["INFO"],
                    "api_count": api_count,
                },
                "performance": {"average_response_time_ms": average},
                "recent_logs": [asdict(e) for e in list(self._entries)[-5:]],
            }
