"""
Bounded in-memory log of fetch outcomes, used for source health reporting.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional


@dataclass
class RequestLogEntry:
    """One fetch outcome."""
    source: str
    endpoint: str
    success: bool
    latency_ms: float
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class RequestLog:
    """
    Ring buffer of the most recent fetch outcomes across all sources.

    Appends trim the oldest entry once ``max_entries`` is reached; the trim
    and the append happen under one lock so concurrent writers are safe.
    """

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._entries: deque[RequestLogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def log(
        self,
        source: str,
        endpoint: str,
        success: bool,
        latency_ms: float,
        error: Optional[str] = None,
    ) -> RequestLogEntry:
        entry = RequestLogEntry(
            source=source,
            endpoint=endpoint,
            success=success,
            latency_ms=latency_ms,
            error=error,
        )
        with self._lock:
            self._entries.append(entry)
        return entry

    def get_logs(self, source: Optional[str] = None, limit: int = 100) -> list[RequestLogEntry]:
        """Most recent entries first, optionally restricted to one source."""
        with self._lock:
            entries = list(self._entries)
        if source is not None:
            entries = [e for e in entries if e.source == source]
        entries.reverse()
        return entries[:limit]

    def get_stats(self, source: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        """
        Summarize logged requests.

        Returns:
            Dict with total, successful, failed, success_rate,
            avg_latency_ms, last_hour, last_success and last_error
        """
        now = now or datetime.now(timezone.utc)
        with self._lock:
            entries = [e for e in self._entries if source is None or e.source == source]

        total = len(entries)
        successful = [e for e in entries if e.success]
        failed = [e for e in entries if not e.success]
        hour_ago = now - timedelta(hours=1)

        last_success = successful[-1].timestamp if successful else None
        last_error = failed[-1].error if failed else None

        return {
            "total": total,
            "successful": len(successful),
            "failed": len(failed),
            "success_rate": len(successful) / total if total else 0.0,
            "avg_latency_ms": sum(e.latency_ms for e in entries) / total if total else 0.0,
            "last_hour": sum(1 for e in entries if e.timestamp >= hour_ago),
            "last_success": last_success,
            "last_error": last_error,
        }
