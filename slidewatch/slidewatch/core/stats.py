"""Service statistics.

In-memory counters for assessments, notifications, field checks and remote
refreshes. No framework dependencies.
"""

from __future__ import annotations

import threading
import time


class MonitorStats:
    """Thread-safe counters exposed by the monitoring endpoint."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()

        # Scoring
        self.snapshots_received: int = 0
        self.assessments_computed: int = 0

        # Notifications
        self.notifications_queued: dict[str, int] = {}
        self.pushes_sent: int = 0
        self.local_notifications: int = 0
        self.dispatch_failures: int = 0
        self.queue_depth: int = 0
        self.queue_max_depth: int = 0

        # Field checks
        self.field_checks_started: int = 0
        self.field_checks_refused: int = 0
        self.field_checks_stopped: dict[str, int] = {}
        self.ground_samples_received: int = 0
        self.track_points_received: int = 0

        # Remote sources
        self.refreshes: int = 0
        self.refresh_failures: int = 0

    def record_snapshot(self) -> None:
        with self._lock:
            self.snapshots_received += 1

    def record_assessment(self) -> None:
        with self._lock:
            self.assessments_computed += 1

    def record_notification_queued(self, kind: str) -> None:
        with self._lock:
            self.notifications_queued[kind] = self.notifications_queued.get(kind, 0) + 1

    def record_push_sent(self) -> None:
        with self._lock:
            self.pushes_sent += 1

    def record_local_notification(self) -> None:
        with self._lock:
            self.local_notifications += 1

    def record_dispatch_failure(self) -> None:
        with self._lock:
            self.dispatch_failures += 1

    def update_queue_depth(self, depth: int) -> None:
        with self._lock:
            self.queue_depth = depth
            if depth > self.queue_max_depth:
                self.queue_max_depth = depth

    def record_field_check_started(self) -> None:
        with self._lock:
            self.field_checks_started += 1

    def record_field_check_refused(self) -> None:
        with self._lock:
            self.field_checks_refused += 1

    def record_field_check_stopped(self, reason: str) -> None:
        with self._lock:
            self.field_checks_stopped[reason] = self.field_checks_stopped.get(reason, 0) + 1

    def record_ground_samples(self, count: int) -> None:
        with self._lock:
            self.ground_samples_received += count

    def record_track_points(self, count: int) -> None:
        with self._lock:
            self.track_points_received += count

    def record_refresh(self, *, ok: bool) -> None:
        with self._lock:
            self.refreshes += 1
            if not ok:
                self.refresh_failures += 1

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        with self._lock:
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "snapshots_received": self.snapshots_received,
                "assessments_computed": self.assessments_computed,
                "notifications": {
                    "queued": dict(self.notifications_queued),
                    "pushes_sent": self.pushes_sent,
                    "local": self.local_notifications,
                    "dispatch_failures": self.dispatch_failures,
                    "queue_depth": self.queue_depth,
                    "queue_max_depth_ever": self.queue_max_depth,
                },
                "field_checks": {
                    "started": self.field_checks_started,
                    "refused": self.field_checks_refused,
                    "stopped": dict(self.field_checks_stopped),
                    "samples_received": self.ground_samples_received,
                    "points_received": self.track_points_received,
                },
                "refreshes": {
                    "total": self.refreshes,
                    "failed": self.refresh_failures,
                },
            }
