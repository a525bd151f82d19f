"""Metrics collection for feed and discovery composition."""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock


_metrics_instance: "FeedMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class FeedMetrics:
    """Thread-safe metrics for page composition.

    Use get_instance() for singleton access.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    # Composed pages by surface ("feed", "discovery") and tab
    requests_by_surface: Counter[tuple[str, str]] = field(default_factory=Counter)

    # Failed fan-out branches by branch name (usually the content family)
    branch_failures: Counter[str] = field(default_factory=Counter)

    # Personalized bucket fell back to latest items
    personalization_degraded_total: int = 0

    # Composition errors that produced an empty page
    empty_pages_total: int = 0

    # Items served
    items_served_total: int = 0

    @classmethod
    def get_instance(cls) -> "FeedMetrics":
        """Get the singleton instance (thread-safe).

        Returns:
            The shared FeedMetrics instance.
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

    def record_request(self, surface: str, tab: str, items: int) -> None:
        """Record a composed page.

        Args:
            surface: "feed" or "discovery".
            tab: Tab or content type requested.
            items: Number of items on the page.
        """
        with self._lock:
            self.requests_by_surface[(surface, tab)] += 1
            self.items_served_total += items

    def record_branch_failure(self, branch: str) -> None:
        """Record a failed fan-out branch."""
        with self._lock:
            self.branch_failures[branch] += 1

    def record_personalization_degraded(self) -> None:
        """Record a personalization fallback."""
        with self._lock:
            self.personalization_degraded_total += 1

    def record_empty_page(self) -> None:
        """Record a composition error answered with an empty page."""
        with self._lock:
            self.empty_pages_total += 1

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "requests_by_surface": {
                    f"{surface}:{tab}": count
                    for (surface, tab), count in sorted(self.requests_by_surface.items())
                },
                "branch_failures": dict(sorted(self.branch_failures.items())),
                "personalization_degraded_total": self.personalization_degraded_total,
                "empty_pages_total": self.empty_pages_total,
                "items_served_total": self.items_served_total,
            }
