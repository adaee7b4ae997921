"""
Performance Monitoring and Background Tasks

Collects request timings and process resource usage for the health and
metrics endpoints, and runs the optional periodic backup worker alongside
the FastAPI application.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

import psutil

from .errors import StorageError
from .storage import JsonFileStore

METRICS_HISTORY_SIZE = 1000  # Keep last 1000 request timings
SLOW_REQUEST_THRESHOLD_MS = 500

logger = logging.getLogger(__name__)


@dataclass
class RequestMetric:
    """Single request timing with timestamp."""
    timestamp: datetime
    method: str
    path: str
    status_code: int
    duration_ms: float


class PerformanceMonitor:
    """
    Per-application collector of request timings and process metrics.

    One instance lives on ``app.state``; nothing here is module-global.
    """

    def __init__(self):
        self.request_times: deque = deque(maxlen=METRICS_HISTORY_SIZE)
        self.total_requests = 0
        self.failed_requests = 0
        self.start_time = datetime.now(timezone.utc)
        self.last_backup_path: Optional[str] = None

    def record_request(self, method: str, path: str, status_code: int, duration_ms: float):
        """
        Record one handled HTTP request.

        Args:
            method: HTTP method
            path: Request path
            status_code: Response status code
            duration_ms: Handling time in milliseconds
        """
        self.request_times.append(RequestMetric(
            timestamp=datetime.now(timezone.utc),
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms
        ))
        self.total_requests += 1
        if status_code >= 500:
            self.failed_requests += 1

        if duration_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(f"Slow request: {method} {path} took {duration_ms:.2f}ms")

    def get_average_request_time(self) -> float:
        """Average handling time over recent history."""
        if not self.request_times:
            return 0.0
        return sum(m.duration_ms for m in self.request_times) / len(self.request_times)

    def get_uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    def get_memory_usage_mb(self) -> float:
        """Get current process memory usage in MB."""
        try:
            memory_bytes = psutil.Process().memory_info().rss
            return memory_bytes / (1024 * 1024)
        except psutil.Error as e:
            logger.warning(f"Failed to get memory usage: {e}")
            return 0.0

    def get_cpu_usage_percent(self) -> float:
        """Get current process CPU usage percentage."""
        try:
            return psutil.Process().cpu_percent(interval=None)
        except psutil.Error as e:
            logger.warning(f"Failed to get CPU usage: {e}")
            return 0.0

    def snapshot(self) -> Dict[str, Any]:
        """Metrics payload for the metrics endpoint."""
        return {
            "requests": {
                "total": self.total_requests,
                "failed": self.failed_requests,
                "avgDurationMs": round(self.get_average_request_time(), 3),
            },
            "system": {
                "memoryUsageMb": round(self.get_memory_usage_mb(), 2),
                "cpuUsagePercent": self.get_cpu_usage_percent(),
                "uptimeSeconds": round(self.get_uptime_seconds(), 3),
            },
            "backups": {
                "lastBackupPath": self.last_backup_path,
            },
        }


class BackgroundTasks:
    """
    Background task management for periodic storage maintenance.

    The only worker is the auto-backup loop, which copies the primary
    document to a timestamped sibling every ``interval_seconds``.
    """

    def __init__(self):
        self.tasks: List[asyncio.Task] = []
        self.shutdown_event = asyncio.Event()

    async def start_background_tasks(self, store: JsonFileStore, monitor: PerformanceMonitor,
                                     backup_interval_seconds: int):
        """
        Start maintenance workers.

        Args:
            store: Store to back up
            monitor: Monitor recording the last backup path
            backup_interval_seconds: Backup period; 0 disables the worker
        """
        # Fresh event per lifespan; an Event binds to the loop that first awaits it
        self.shutdown_event = asyncio.Event()
        if backup_interval_seconds <= 0:
            logger.info("Automatic backups disabled")
            return

        backup_task = asyncio.create_task(
            self._backup_worker(store, monitor, backup_interval_seconds)
        )
        self.tasks.append(backup_task)
        logger.info(f"Started {len(self.tasks)} background tasks")

    async def stop_background_tasks(self):
        """Stop all background tasks gracefully."""
        self.shutdown_event.set()

        for task in self.tasks:
            if not task.done():
                task.cancel()

        if self.tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self.tasks, return_exceptions=True),
                    timeout=10.0
                )
                logger.info("All background tasks stopped")
            except asyncio.TimeoutError:
                logger.warning("Background task shutdown timeout")
        self.tasks = []

    async def _backup_worker(self, store: JsonFileStore, monitor: PerformanceMonitor,
                             interval_seconds: int):
        """Periodically write a timestamped backup until shutdown."""
        logger.info(f"Backup worker started (every {interval_seconds}s)")

        while not self.shutdown_event.is_set():
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=interval_seconds)
                break  # Shutdown requested
            except asyncio.TimeoutError:
                pass

            start_time = time.time()
            try:
                backup_path = await asyncio.to_thread(store.backup_now)
            except StorageError as e:
                logger.error(f"Backup worker error: {e}")
                continue

            if backup_path is not None:
                monitor.last_backup_path = str(backup_path)
                logger.debug(f"Automatic backup took {(time.time() - start_time) * 1000:.2f}ms")
