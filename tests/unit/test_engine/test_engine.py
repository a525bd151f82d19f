"""Unit tests for the engine facade over in-memory stores."""

import random
from collections.abc import Generator

import pytest
import structlog

from src.config.schemas.engine import EngineConfig
from src.engine import ContentEngine, request_context
from src.feed.metrics import FeedMetrics
from src.store.errors import SubscriptionNotFoundError
from src.store.memory import (
    InMemoryBehaviorLog,
    InMemoryFavoriteStore,
    InMemorySubscriptionStore,
)
from src.store.models import ContentType
from src.subscription.metrics import SyncMetrics
from tests.helpers.factories import make_family, make_item, make_stores, make_subscription
from tests.helpers.time import FIXED_NOW


@pytest.fixture(autouse=True)
def fresh_metrics() -> Generator[None]:
    """Reset metrics singletons around each test."""
    FeedMetrics.reset()
    SyncMetrics.reset()
    yield
    FeedMetrics.reset()
    SyncMetrics.reset()


@pytest.fixture
def subscriptions() -> InMemorySubscriptionStore:
    """Subscription store with one paper subscription."""
    store = InMemorySubscriptionStore()
    store.create(make_subscription(keywords=["p1", "p2"]))
    return store


@pytest.fixture
def engine(subscriptions: InMemorySubscriptionStore) -> Generator[ContentEngine]:
    """Engine over ten items per family with a fixed clock."""
    items = [item for ct in ContentType for item in make_family(ct, 10)]
    items.append(
        make_item(ContentType.NEWS, "pinned", is_pinned=True, pinned_at=FIXED_NOW)
    )
    with ContentEngine(
        make_stores(items),
        InMemoryBehaviorLog(),
        InMemoryFavoriteStore(),
        subscriptions,
        rng=random.Random(3),
        now=FIXED_NOW,
        auto_sync=False,
    ) as built:
        yield built


class TestContentEngine:
    """Tests for ContentEngine entry points."""

    def test_default_config(self, engine: ContentEngine) -> None:
        """Test defaults apply when no config is given."""
        assert engine.config == EngineConfig()

    def test_compose_feed(self, engine: ContentEngine) -> None:
        """Test the recommend tab returns a bounded page of unique items."""
        page = engine.compose_feed("recommend", skip=0, take=10)

        ids = [(i.type, i.id) for i in page.items]
        assert 0 < len(ids) <= 10
        assert len(set(ids)) == len(ids)

    def test_direct_tab(self, engine: ContentEngine) -> None:
        """Test a direct tab lists one family with its exact count."""
        page = engine.compose_feed("code", take=5)

        assert page.total == 10
        assert [i.id for i in page.items] == ["r0", "r1", "r2", "r3", "r4"]

    def test_compose_discovery_news_has_pins(self, engine: ContentEngine) -> None:
        """Test the news page carries the pinned overlay."""
        page = engine.compose_discovery("news", "latest", take=5)

        assert [p.content_id for p in page.pinned_items] == ["pinned"]

    def test_compose_discovery_latest_paper(self, engine: ContentEngine) -> None:
        """Test a single-family latest page is newest first."""
        page = engine.compose_discovery("paper", "latest", skip=2, take=3)

        assert [i.id for i in page.items] == ["p2", "p3", "p4"]
        assert page.total == 10

    def test_sync_and_subscribed_content(
        self, engine: ContentEngine, subscriptions: InMemorySubscriptionStore
    ) -> None:
        """Test a manual sync then a subscribed content lookup."""
        result = engine.sync_subscription("sub-1")

        assert result.matched_count == 2
        stored = subscriptions.get("sub-1")
        assert stored is not None
        assert stored.last_sync_at == FIXED_NOW

        content = engine.get_subscribed_content("user-1", "paper")
        assert [i.id for i in content.items] == ["p1", "p2"]

    def test_naive_now_taken_as_utc(
        self, subscriptions: InMemorySubscriptionStore
    ) -> None:
        """Test a naive reference time syncs like its UTC equivalent."""
        with ContentEngine(
            make_stores(make_family(ContentType.PAPER, 10)),
            InMemoryBehaviorLog(),
            InMemoryFavoriteStore(),
            subscriptions,
            now=FIXED_NOW.replace(tzinfo=None),
            auto_sync=False,
        ) as engine:
            result = engine.sync_subscription("sub-1")

        assert result.matched_count == 2
        stored = subscriptions.get("sub-1")
        assert stored is not None
        assert stored.last_sync_at == FIXED_NOW

    def test_sync_missing(self, engine: ContentEngine) -> None:
        """Test a missing subscription propagates."""
        with pytest.raises(SubscriptionNotFoundError):
            engine.sync_subscription("nope")

    def test_subscription_service_exposed(self, engine: ContentEngine) -> None:
        """Test the management service is reachable from the engine."""
        items, total = engine.subscriptions.list_for_user("user-1")
        assert total == 1
        assert items[0].id == "sub-1"


class TestRequestContext:
    """Tests for request_context."""

    def test_binds_and_clears(self) -> None:
        """Test the request id is bound only inside the block."""
        with request_context("op") as request_id:
            assert structlog.contextvars.get_contextvars()["request_id"] == request_id
        assert "request_id" not in structlog.contextvars.get_contextvars()
