"""Hot and latest selectors over the content families.

Both selectors split a target count evenly across a fixed family list and
fetch every family concurrently. A family whose store fails contributes
nothing.
"""

import math
from collections.abc import Mapping

import structlog

from src.config.schemas.engine import FeedConfig
from src.feed.fanout import Branch, run_all_settled
from src.ranking.hotness import HotnessScorer
from src.store.errors import StoreUnavailableError
from src.store.models import ContentItem, ContentType
from src.store.predicates import Equals, OrderBy, Predicate
from src.store.protocols import ContentStore


logger = structlog.get_logger()

HOT_FAMILIES: tuple[ContentType, ...] = (
    ContentType.PAPER,
    ContentType.VIDEO,
    ContentType.REPO,
    ContentType.MODEL,
)

LATEST_FAMILIES: tuple[ContentType, ...] = (
    ContentType.PAPER,
    ContentType.VIDEO,
    ContentType.REPO,
    ContentType.JOB,
    ContentType.MODEL,
)

# Visibility filters applied whenever a family is listed
FAMILY_FILTERS: dict[ContentType, Predicate] = {
    ContentType.JOB: Equals("status", "open"),
    ContentType.POST: Equals("status", "active"),
}

RECENCY = OrderBy("published_at", descending=True)


def family_filter(content_type: ContentType) -> Predicate | None:
    """Visibility predicate for a family, if any."""
    return FAMILY_FILTERS.get(content_type)


def store_for(
    stores: Mapping[ContentType, ContentStore], content_type: ContentType
) -> ContentStore:
    """Look up a family's adapter.

    Raises:
        StoreUnavailableError: If no adapter is registered for the family.
    """
    store = stores.get(content_type)
    if store is None:
        raise StoreUnavailableError(content_type.value, "no adapter registered")
    return store


def split_evenly(count: int, families: int) -> int:
    """Per-family share of a bucket; never less than one."""
    return max(1, math.floor(count / families))


class HotSelector:
    """Selects the hottest items per family."""

    def __init__(
        self,
        stores: Mapping[ContentType, ContentStore],
        scorer: HotnessScorer,
        config: FeedConfig | None = None,
        max_workers: int = 4,
    ) -> None:
        """Initialize the selector.

        Args:
            stores: Content adapters by family.
            scorer: Hotness scorer.
            config: Feed configuration (hot over-fetch factor).
            max_workers: Fan-out pool size.
        """
        self._stores = stores
        self._scorer = scorer
        self._config = config or FeedConfig()
        self._max_workers = max_workers
        self._log = logger.bind(component="feed", subcomponent="hot_selector")

    def _fetch_family(self, content_type: ContentType, share: int) -> list[ContentItem]:
        candidates = store_for(self._stores, content_type).find_many(
            where=family_filter(content_type),
            take=share * self._config.hot_overfetch,
        )
        return self._scorer.top(candidates, share)

    def select(self, count: int) -> list[ContentItem]:
        """Select hot items.

        Each family gets ``max(1, floor(count / 4))`` slots; candidates are
        over-fetched in store order, scored, and truncated.

        Args:
            count: Bucket target.

        Returns:
            Items grouped by family in family order.
        """
        share = split_evenly(count, len(HOT_FAMILIES))
        outcomes = run_all_settled(
            [
                Branch(
                    name=ct.value,
                    call=lambda ct=ct: self._fetch_family(ct, share),
                    default=[],
                )
                for ct in HOT_FAMILIES
            ],
            max_workers=self._max_workers,
            component="feed",
        )
        items = [item for outcome in outcomes for item in outcome.value]
        self._log.debug("hot_selected", target=count, share=share, selected=len(items))
        return items


class LatestSelector:
    """Selects the most recent items per family."""

    def __init__(
        self,
        stores: Mapping[ContentType, ContentStore],
        max_workers: int = 4,
    ) -> None:
        """Initialize the selector.

        Args:
            stores: Content adapters by family.
            max_workers: Fan-out pool size.
        """
        self._stores = stores
        self._max_workers = max_workers
        self._log = logger.bind(component="feed", subcomponent="latest_selector")

    def select(self, count: int) -> list[ContentItem]:
        """Select the newest items, ``max(1, floor(count / 5))`` per family."""
        share = split_evenly(count, len(LATEST_FAMILIES))
        outcomes = run_all_settled(
            [
                Branch(
                    name=ct.value,
                    call=lambda ct=ct: store_for(self._stores, ct).find_many(
                        where=family_filter(ct), order_by=RECENCY, take=share
                    ),
                    default=[],
                )
                for ct in LATEST_FAMILIES
            ],
            max_workers=self._max_workers,
            component="feed",
        )
        items = [item for outcome in outcomes for item in outcome.value]
        self._log.debug(
            "latest_selected", target=count, share=share, selected=len(items)
        )
        return items
