"""Unit tests for the subscription sync engine."""

from collections.abc import Generator
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from src.config.schemas.engine import SubscriptionConfig
from src.store.errors import SubscriptionNotFoundError
from src.store.memory import InMemorySubscriptionStore
from src.store.models import ContentType, SyncStatus, SyncType
from src.subscription.metrics import SyncMetrics
from src.subscription.sync import SyncEngine, count_new_items
from tests.helpers.factories import make_item, make_stores, make_subscription
from tests.helpers.time import FIXED_NOW, hours_ago


@pytest.fixture(autouse=True)
def fresh_metrics() -> Generator[None]:
    """Reset the metrics singleton around each test."""
    SyncMetrics.reset()
    yield
    SyncMetrics.reset()


@pytest.fixture
def subscriptions() -> InMemorySubscriptionStore:
    """Store holding one paper subscription for "transformer"."""
    store = InMemorySubscriptionStore()
    store.create(make_subscription())
    return store


def paper(item_id: str, hours: float, title: str = "Transformer study"):
    """A paper published ``hours`` before FIXED_NOW."""
    return make_item(ContentType.PAPER, item_id, published_at=hours_ago(hours), title=title)


class TestCountNewItems:
    """Tests for count_new_items."""

    def test_window_and_cap(self) -> None:
        """Test only items inside the window count, up to the cap."""
        items = [paper(f"p{i}", hours=i * 5) for i in range(10)]
        window = timedelta(hours=24)
        assert count_new_items(items, FIXED_NOW, window, cap=20) == 5
        assert count_new_items(items, FIXED_NOW, window, cap=3) == 3

    def test_missing_timestamp_not_new(self) -> None:
        """Test undated items are never new."""
        item = make_item(ContentType.PAPER, "p", published_at=None)
        assert count_new_items([item], FIXED_NOW, timedelta(hours=24), 20) == 0


class TestSyncEngine:
    """Tests for SyncEngine.sync."""

    def test_success_updates_counters_and_history(
        self, subscriptions: InMemorySubscriptionStore
    ) -> None:
        """Test a sync stores counters and one success row."""
        stores = make_stores(
            [
                paper("fresh", hours=2),
                paper("old", hours=72),
                paper("other", hours=1, title="Graph networks"),
            ]
        )
        engine = SyncEngine(stores, subscriptions, clock=lambda: FIXED_NOW)

        result = engine.sync("sub-1")

        assert result.matched_count == 2
        assert result.new_count == 1
        sub = subscriptions.get("sub-1")
        assert sub is not None
        assert sub.total_matched == 2
        assert sub.new_count == 1
        assert sub.last_sync_at == FIXED_NOW
        assert sub.last_checked == FIXED_NOW

        history = subscriptions.list_history("sub-1")
        assert len(history) == 1
        assert history[0].status == SyncStatus.SUCCESS
        assert history[0].sync_type == SyncType.MANUAL
        assert history[0].matched_count == 2

    def test_naive_clock_taken_as_utc(
        self, subscriptions: InMemorySubscriptionStore
    ) -> None:
        """Test a clock without tzinfo still compares against stored dates."""
        stores = make_stores([paper("fresh", hours=2), paper("old", hours=72)])
        naive_now = FIXED_NOW.replace(tzinfo=None)
        engine = SyncEngine(stores, subscriptions, clock=lambda: naive_now)

        result = engine.sync("sub-1")

        assert result.new_count == 1
        sub = subscriptions.get("sub-1")
        assert sub is not None
        assert sub.last_sync_at == FIXED_NOW

    def test_new_count_capped(self, subscriptions: InMemorySubscriptionStore) -> None:
        """Test the new count is capped while matched is not."""
        stores = make_stores([paper(f"p{i}", hours=1) for i in range(30)])
        engine = SyncEngine(stores, subscriptions, clock=lambda: FIXED_NOW)

        result = engine.sync("sub-1", SyncType.AUTO)

        assert result.matched_count == 30
        assert result.new_count == 20
        assert subscriptions.list_history("sub-1")[0].sync_type == SyncType.AUTO

    def test_matched_limited_by_fetch_limit(
        self, subscriptions: InMemorySubscriptionStore
    ) -> None:
        """Test matched counts the fetched rows only."""
        stores = make_stores([paper(f"p{i}", hours=100 + i) for i in range(15)])
        engine = SyncEngine(
            stores,
            subscriptions,
            config=SubscriptionConfig(sync_fetch_limit=10),
            clock=lambda: FIXED_NOW,
        )
        assert engine.sync("sub-1").matched_count == 10

    def test_missing_subscription(self, subscriptions: InMemorySubscriptionStore) -> None:
        """Test an unknown id raises without writing history."""
        engine = SyncEngine(make_stores(), subscriptions, clock=lambda: FIXED_NOW)
        with pytest.raises(SubscriptionNotFoundError):
            engine.sync("nope")
        assert subscriptions.list_history("nope") == []
        assert SyncMetrics.get_instance().sync_count == 0

    def test_store_failure_records_failed_row(
        self, subscriptions: InMemorySubscriptionStore
    ) -> None:
        """Test a store error leaves counters alone and re-raises."""
        stores = make_stores()
        broken = MagicMock()
        broken.find_many.side_effect = RuntimeError("db down")
        stores[ContentType.PAPER] = broken
        engine = SyncEngine(stores, subscriptions, clock=lambda: FIXED_NOW)

        with pytest.raises(RuntimeError, match="db down"):
            engine.sync("sub-1")

        sub = subscriptions.get("sub-1")
        assert sub is not None
        assert sub.last_sync_at is None
        assert sub.total_matched == 0
        history = subscriptions.list_history("sub-1")
        assert [h.status for h in history] == [SyncStatus.FAILED]
        assert history[0].error_message == "db down"

    def test_history_write_failure_still_raises_original(self) -> None:
        """Test a failing failure-row write does not mask the sync error."""
        subscriptions = MagicMock()
        subscriptions.get.return_value = make_subscription()
        subscriptions.append_history.side_effect = RuntimeError("history down")
        stores = make_stores()
        broken = MagicMock()
        broken.find_many.side_effect = ValueError("bad query")
        stores[ContentType.PAPER] = broken

        engine = SyncEngine(stores, subscriptions, clock=lambda: FIXED_NOW)
        with pytest.raises(ValueError, match="bad query"):
            engine.sync("sub-1")

    def test_metrics(self, subscriptions: InMemorySubscriptionStore) -> None:
        """Test successes and failures are counted by type and status."""
        stores = make_stores([paper("p", hours=1)])
        engine = SyncEngine(stores, subscriptions, clock=lambda: FIXED_NOW)
        engine.sync("sub-1")
        engine.sync("sub-1", "auto")

        metrics = SyncMetrics.get_instance()
        assert metrics.syncs_total[("manual", "success")] == 1
        assert metrics.syncs_total[("auto", "success")] == 1
        assert metrics.items_matched_total == 2
        assert metrics.to_dict()["syncs_total"] == {
            "auto:success": 1,
            "manual:success": 1,
        }
