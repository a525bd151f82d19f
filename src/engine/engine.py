"""Content engine facade.

Wires the scorer, selectors, composers and subscription components over a
set of injected stores and exposes the four entry points used by the API
layer and the scheduler.
"""

import random
import uuid
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime

import structlog

from src.config.schemas.engine import EngineConfig
from src.discovery.composer import DiscoveryComposer
from src.discovery.models import DiscoveryPage, DiscoveryType, SortType
from src.discovery.pins import StorePinService
from src.feed.composer import FeedComposer
from src.feed.models import FeedPage, FeedTab
from src.feed.selectors import HotSelector, LatestSelector
from src.observability.logging import bind_request_context, clear_request_context
from src.personalization.selector import PersonalizationSelector
from src.ranking.hotness import HotnessScorer
from src.store.models import ContentType, SyncType, ensure_utc
from src.store.protocols import (
    BehaviorLog,
    ContentStore,
    FavoriteStore,
    PinService,
    SubscriptionStore,
)
from src.store.sqlite import SqliteStore
from src.subscription.models import SubscribedContent, SyncResult
from src.subscription.service import SubscriptionService
from src.subscription.sync import SyncEngine


logger = structlog.get_logger()


@contextmanager
def request_context(operation: str) -> Iterator[str]:
    """Bind a fresh request id to log lines for one engine call."""
    request_id = uuid.uuid4().hex[:12]
    bind_request_context(request_id, operation)
    try:
        logger.debug("engine_call")
        yield request_id
    finally:
        clear_request_context()


class ContentEngine:
    """Ranking and subscription-matching engine."""

    def __init__(  # noqa: PLR0913
        self,
        stores: Mapping[ContentType, ContentStore],
        behavior_log: BehaviorLog,
        favorites: FavoriteStore,
        subscriptions: SubscriptionStore,
        pin_service: PinService | None = None,
        config: EngineConfig | None = None,
        max_workers: int = 8,
        rng: random.Random | None = None,
        now: datetime | None = None,
        auto_sync: bool = True,
    ) -> None:
        """Initialize the engine.

        Args:
            stores: Content adapters by family.
            behavior_log: User behavior reader.
            favorites: Favorites reader.
            subscriptions: Subscription and history store.
            pin_service: Pinned overlay source; defaults to a service over
                ``stores``.
            config: Engine configuration; defaults apply when omitted.
            max_workers: Fan-out pool size.
            rng: Random source for the feed shuffle.
            now: Fixed reference time (tests); None uses the clock. A naive
                value is taken as UTC.
            auto_sync: Sync new subscriptions in the background.
        """
        self._config = config or EngineConfig()
        if now is not None:
            now = ensure_utc(now)
        clock: Callable[[], datetime] = (lambda: now) if now else (lambda: datetime.now(UTC))

        scorer = HotnessScorer(self._config.hotness, now=now)
        hot = HotSelector(stores, scorer, self._config.feed, max_workers=max_workers)
        latest = LatestSelector(stores, max_workers=max_workers)
        personalization = PersonalizationSelector(
            stores,
            behavior_log,
            favorites,
            latest,
            self._config.personalization,
            max_workers=max_workers,
            now=now,
        )
        self._feed = FeedComposer(
            stores,
            hot,
            latest,
            personalization,
            self._config.feed,
            rng=rng,
            max_workers=max_workers,
        )
        self._discovery = DiscoveryComposer(
            stores,
            scorer,
            pin_service or StorePinService(stores, now=now),
            self._config.discovery,
            max_workers=max_workers,
        )
        self._sync = SyncEngine(stores, subscriptions, self._config.subscription, clock)
        self._service = SubscriptionService(
            stores, subscriptions, self._sync, auto_sync=auto_sync, clock=clock
        )
        self._log = logger.bind(component="engine")

    @classmethod
    def from_sqlite(
        cls,
        store: SqliteStore,
        config: EngineConfig | None = None,
        max_workers: int = 8,
        **kwargs: object,
    ) -> "ContentEngine":
        """Build an engine over a connected SQLite store.

        Args:
            store: Connected store.
            config: Engine configuration.
            max_workers: Fan-out pool size.
            **kwargs: Passed to the constructor.

        Returns:
            The engine.
        """
        stores = {ct: store.content_store(ct) for ct in ContentType}
        return cls(
            stores,
            behavior_log=store,
            favorites=store,
            subscriptions=store.subscriptions(),
            config=config,
            max_workers=max_workers,
            **kwargs,  # type: ignore[arg-type]
        )

    @property
    def config(self) -> EngineConfig:
        """Get the engine configuration."""
        return self._config

    @property
    def subscriptions(self) -> SubscriptionService:
        """Get the subscription management service."""
        return self._service

    def close(self) -> None:
        """Wait for background syncs and release the executor."""
        self._service.close()

    def __enter__(self) -> "ContentEngine":
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def compose_feed(
        self,
        tab: FeedTab | str = FeedTab.RECOMMEND,
        skip: int = 0,
        take: int = 20,
        user_id: str | None = None,
    ) -> FeedPage:
        """Compose a feed page. See ``FeedComposer.compose``."""
        with request_context("compose_feed"):
            return self._feed.compose(tab, skip=skip, take=take, user_id=user_id)

    def compose_discovery(
        self,
        content_type: DiscoveryType | str = DiscoveryType.ALL,
        sort_type: SortType | str = SortType.HOT,
        skip: int = 0,
        take: int = 20,
    ) -> DiscoveryPage:
        """Compose a discovery page. See ``DiscoveryComposer.compose``."""
        with request_context("compose_discovery"):
            return self._discovery.compose(content_type, sort_type, skip, take)

    def sync_subscription(
        self,
        subscription_id: str,
        sync_type: SyncType | str = SyncType.MANUAL,
    ) -> SyncResult:
        """Sync one subscription.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
        """
        with request_context("sync_subscription"):
            return self._sync.sync(subscription_id, sync_type)

    def get_subscribed_content(
        self,
        user_id: str,
        content_type: ContentType | str,
        skip: int = 0,
        take: int = 20,
    ) -> SubscribedContent:
        """Items matching the user's active subscription for a family."""
        with request_context("get_subscribed_content"):
            return self._service.get_subscribed_content(
                user_id, content_type, skip=skip, take=take
            )
