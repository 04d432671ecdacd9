"""Telemetry for command usage and clock events."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class MetricType(Enum):
    """Types of metrics tracked."""
    COMMAND_USAGE = "command_usage"
    ERROR_RATE = "error_rate"
    SYSTEM_EVENT = "system_event"


@dataclass
class MetricEvent:
    """Individual metric event."""
    timestamp: float
    metric_type: MetricType
    name: str
    value: float
    tags: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


class TelemetryCollector:
    """Buffers metric events and stores them in SQLite.

    Passing ``db_path=None`` keeps events in memory only, which is how the bot
    runs when telemetry is disabled in the settings file.
    """

    def __init__(self, db_path: Optional[Path] = Path("telemetry.db"), flush_interval: float = 60.0):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._metrics_buffer: List[MetricEvent] = []
        self._flush_interval = flush_interval
        self._last_flush = time.time()
        if self.db_path is not None:
            self._init_database()

    def _init_database(self):
        """Initialize telemetry database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS metrics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    metric_type TEXT NOT NULL,
                    name TEXT NOT NULL,
                    value REAL NOT NULL,
                    tags TEXT,
                    metadata TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_metrics_type_name
                ON metrics(metric_type, name)
            """)
            conn.commit()

    def track_command(
        self,
        command_name: str,
        user_id: str,
        guild_id: str,
        success: bool = True,
        duration_ms: Optional[float] = None,
    ):
        """Track Discord command usage."""
        self.record(
            MetricType.COMMAND_USAGE,
            command_name,
            1.0,
            tags={"user_id": user_id, "guild_id": guild_id, "success": str(success)},
            metadata={"duration_ms": duration_ms} if duration_ms is not None else None,
        )

    def track_error(self, error_type: str, command: Optional[str] = None, error_details: Optional[str] = None):
        """Track errors raised while handling a command."""
        tags = {"error_type": error_type}
        if command:
            tags["command"] = command
        self.record(
            MetricType.ERROR_RATE,
            error_type,
            1.0,
            tags=tags,
            metadata={"details": error_details} if error_details else None,
        )

    def track_system_event(self, event: str, *, source: Optional[str] = None, reason: Optional[str] = None):
        """Track clock lifecycle events such as calibrations and daily resets."""
        tags = {}
        if source:
            tags["source"] = source
        self.record(
            MetricType.SYSTEM_EVENT,
            event,
            1.0,
            tags=tags,
            metadata={"reason": reason} if reason else None,
        )

    def record(
        self,
        metric_type: MetricType,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        """Record a metric event."""
        event = MetricEvent(
            timestamp=time.time(),
            metric_type=metric_type,
            name=name,
            value=value,
            tags=tags or {},
            metadata=metadata or {},
        )
        with self._lock:
            self._metrics_buffer.append(event)
            due = len(self._metrics_buffer) >= 100 or time.time() - self._last_flush > self._flush_interval
        if due:
            self.flush()

    def flush(self):
        """Flush buffered metrics to database."""
        with self._lock:
            if not self._metrics_buffer or self.db_path is None:
                return
            pending = list(self._metrics_buffer)
            try:
                with sqlite3.connect(self.db_path) as conn:
                    conn.executemany(
                        """
                        INSERT INTO metrics (timestamp, metric_type, name, value, tags, metadata)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                event.timestamp,
                                event.metric_type.value,
                                event.name,
                                event.value,
                                json.dumps(event.tags),
                                json.dumps(event.metadata),
                            )
                            for event in pending
                        ],
                    )
                    conn.commit()
            except sqlite3.Error as e:
                logger.error(f"Failed to flush metrics: {e}")
                return
            self._metrics_buffer.clear()
            self._last_flush = time.time()
        logger.debug(f"Flushed {len(pending)} metrics to database")

    def buffered(self) -> List[MetricEvent]:
        with self._lock:
            return list(self._metrics_buffer)

    def get_command_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get command usage statistics."""
        if self.db_path is None:
            return {}
        query = """
            SELECT
                name as command,
                COUNT(*) as usage_count,
                AVG(CASE WHEN json_extract(tags, '$.success') = 'True'
                    THEN 1 ELSE 0 END) as success_rate,
                COUNT(DISTINCT json_extract(tags, '$.user_id')) as unique_users
            FROM metrics
            WHERE metric_type = ?
            GROUP BY name
        """
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(query, [MetricType.COMMAND_USAGE.value])
            return {
                row[0]: {
                    "usage_count": row[1],
                    "success_rate": row[2],
                    "unique_users": row[3],
                }
                for row in cursor.fetchall()
            }

    def get_system_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Return the most recent system events, newest first."""
        if self.db_path is None:
            return []
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                """
                SELECT timestamp, name, tags, metadata FROM metrics
                WHERE metric_type = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                [MetricType.SYSTEM_EVENT.value, limit],
            )
            events = []
            for timestamp, name, tags, metadata in cursor.fetchall():
                tag_data = json.loads(tags or "{}")
                meta = json.loads(metadata or "{}")
                events.append(
                    {
                        "timestamp": timestamp,
                        "event": name,
                        "source": tag_data.get("source"),
                        "reason": meta.get("reason"),
                    }
                )
            return events


# Singleton instance
_telemetry: Optional[TelemetryCollector] = None


def get_telemetry() -> TelemetryCollector:
    """Get or create singleton telemetry collector."""
    global _telemetry
    if _telemetry is None:
        _telemetry = TelemetryCollector()
    return _telemetry


def set_telemetry(collector: Optional[TelemetryCollector]) -> None:
    """Replace the singleton collector (``None`` recreates the default lazily)."""
    global _telemetry
    _telemetry = collector


__all__ = [
    "MetricEvent",
    "MetricType",
    "TelemetryCollector",
    "get_telemetry",
    "set_telemetry",
]
