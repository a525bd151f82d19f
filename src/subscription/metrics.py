"""Metrics collection for subscription syncs."""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock


_metrics_instance: "SyncMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class SyncMetrics:
    """Thread-safe metrics for subscription syncs.

    Use get_instance() for singleton access.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    # Finished syncs by (sync_type, status)
    syncs_total: Counter[tuple[str, str]] = field(default_factory=Counter)

    sync_duration_ms_total: float = 0.0
    items_matched_total: int = 0
    items_new_total: int = 0

    # Background auto-syncs that failed after creation
    auto_sync_failures_total: int = 0

    @classmethod
    def get_instance(cls) -> "SyncMetrics":
        """Get the singleton instance (thread-safe).

        Returns:
            The shared SyncMetrics instance.
        """
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_sync(
        self,
        sync_type: str,
        status: str,
        duration_ms: float,
        matched: int = 0,
        new: int = 0,
    ) -> None:
        """Record a finished sync.

        Args:
            sync_type: "auto" or "manual".
            status: "success" or "failed".
            duration_ms: Wall time of the sync.
            matched: Matched item count.
            new: New item count.
        """
        with self._lock:
            self.syncs_total[(sync_type, status)] += 1
            self.sync_duration_ms_total += duration_ms
            self.items_matched_total += matched
            self.items_new_total += new

    def record_auto_sync_failure(self) -> None:
        """Record a failed background sync."""
        with self._lock:
            self.auto_sync_failures_total += 1

    @property
    def sync_count(self) -> int:
        """Get the number of finished syncs."""
        with self._lock:
            return sum(self.syncs_total.values())

    @property
    def avg_sync_duration_ms(self) -> float:
        """Get the average sync duration."""
        count = self.sync_count
        if count == 0:
            return 0.0
        return self.sync_duration_ms_total / count

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        avg = self.avg_sync_duration_ms
        with self._lock:
            return {
                "syncs_total": {
                    f"{sync_type}:{status}": count
                    for (sync_type, status), count in sorted(self.syncs_total.items())
                },
                "avg_sync_duration_ms": round(avg, 2),
                "items_matched_total": self.items_matched_total,
                "items_new_total": self.items_new_total,
                "auto_sync_failures_total": self.auto_sync_failures_total,
            }
