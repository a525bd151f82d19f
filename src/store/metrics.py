"""Metrics for the SQLite store.

The store's connection is shared by the composers' worker threads, so
every counter update takes the metrics lock.
"""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Thread-safe counters for store activity.

    Attributes:
        queries_total: Read statements executed.
        content_upserts_total: Content rows written.
        history_rows_total: Sync history rows appended.
        tx_by_operation: Committed transactions per operation name.
        tx_failures_by_operation: Rolled back transactions per operation.
        db_tx_duration_ms: Summed duration of committed transactions.
    """

    queries_total: int = 0
    content_upserts_total: int = 0
    history_rows_total: int = 0
    tx_by_operation: Counter[str] = field(default_factory=Counter)
    tx_failures_by_operation: Counter[str] = field(default_factory=Counter)
    db_tx_duration_ms: float = 0.0

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _instance: ClassVar["StoreMetrics | None"] = None
    _instance_lock: ClassVar[Lock] = Lock()

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get the shared instance."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance (for testing)."""
        with cls._instance_lock:
            cls._instance = None

    def record_query(self) -> None:
        """Count a read statement."""
        with self._lock:
            self.queries_total += 1

    def record_upsert(self, rows: int = 1) -> None:
        """Count written content rows."""
        with self._lock:
            self.content_upserts_total += rows

    def record_history_row(self) -> None:
        """Count an appended history row."""
        with self._lock:
            self.history_rows_total += 1

    def record_tx(self, operation: str, duration_ms: float) -> None:
        """Count a committed transaction and its duration."""
        with self._lock:
            self.tx_by_operation[operation] += 1
            self.db_tx_duration_ms += duration_ms

    def record_tx_failure(self, operation: str) -> None:
        """Count a rolled back transaction."""
        with self._lock:
            self.tx_failures_by_operation[operation] += 1

    @property
    def db_tx_count(self) -> int:
        """Committed transactions across all operations."""
        with self._lock:
            return sum(self.tx_by_operation.values())

    @property
    def db_tx_failures(self) -> int:
        """Rolled back transactions across all operations."""
        with self._lock:
            return sum(self.tx_failures_by_operation.values())

    @property
    def avg_tx_duration_ms(self) -> float:
        """Mean committed transaction duration."""
        count = self.db_tx_count
        if count == 0:
            return 0.0
        return self.db_tx_duration_ms / count

    def to_dict(self) -> dict[str, object]:
        """Snapshot for logging and ``db-stats --json``."""
        avg = self.avg_tx_duration_ms
        with self._lock:
            return {
                "queries_total": self.queries_total,
                "content_upserts_total": self.content_upserts_total,
                "history_rows_total": self.history_rows_total,
                "tx_by_operation": dict(sorted(self.tx_by_operation.items())),
                "tx_failures_by_operation": dict(
                    sorted(self.tx_failures_by_operation.items())
                ),
                "avg_tx_duration_ms": round(avg, 2),
            }


@dataclass
class TransactionContext:
    """Bookkeeping for one ``SqliteStore.transaction`` block."""

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = 0

    def add_affected_rows(self, rows: int) -> None:
        """Add rows touched by a statement in this transaction."""
        self.affected_rows += rows
