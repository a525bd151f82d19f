"""Feed composer.

A composed page is built from three buckets fetched concurrently:

    hot (40%) + latest (30%) + personalized (30%, signed-in users only)

The buckets are concatenated in that priority order, deduplicated by
(type, id), shuffled, and sliced to the requested page. Direct tabs skip
the buckets and list one family by recency.
"""

import math
import random
import uuid
from collections.abc import Mapping

import structlog

from src.config.schemas.engine import FeedConfig
from src.feed.fanout import Branch, run_all_settled
from src.feed.metrics import FeedMetrics
from src.feed.models import TAB_FAMILIES, BucketAllocation, FeedPage, FeedTab
from src.feed.selectors import (
    LATEST_FAMILIES,
    RECENCY,
    HotSelector,
    LatestSelector,
    family_filter,
    store_for,
)
from src.feed.state_machine import ComposeState, ComposeStateMachine
from src.personalization.selector import PersonalizationSelector, dedupe
from src.store.errors import StoreUnavailableError
from src.store.models import ContentItem, ContentType
from src.store.protocols import ContentStore


logger = structlog.get_logger()


def allocate_buckets(
    take: int, signed_in: bool, config: FeedConfig | None = None
) -> BucketAllocation:
    """Split a page size across the three buckets.

    Args:
        take: Requested page size.
        signed_in: Whether a user id accompanies the request.
        config: Bucket ratios.

    Returns:
        Bucket targets; personalized is zero for anonymous requests.
    """
    cfg = config or FeedConfig()
    take = max(take, 0)
    return BucketAllocation(
        hot=math.floor(take * cfg.hot_ratio),
        latest=math.floor(take * cfg.latest_ratio),
        personalized=math.floor(take * cfg.personalized_ratio) if signed_in else 0,
    )


def shuffle_items(items: list[ContentItem], rng: random.Random) -> list[ContentItem]:
    """Uniform random permutation (Fisher-Yates) of a copy of ``items``."""
    shuffled = list(items)
    rng.shuffle(shuffled)
    return shuffled


class FeedComposer:
    """Composes feed pages from the hot, latest and personalized selectors."""

    def __init__(  # noqa: PLR0913
        self,
        stores: Mapping[ContentType, ContentStore],
        hot_selector: HotSelector,
        latest_selector: LatestSelector,
        personalization: PersonalizationSelector | None = None,
        config: FeedConfig | None = None,
        rng: random.Random | None = None,
        max_workers: int = 4,
    ) -> None:
        """Initialize the composer.

        Args:
            stores: Content adapters by family.
            hot_selector: Hot bucket selector.
            latest_selector: Latest bucket selector.
            personalization: Personalized bucket selector; None disables it.
            config: Feed configuration.
            rng: Random source for the shuffle; seeded from config if omitted.
            max_workers: Fan-out pool size.
        """
        self._stores = stores
        self._hot = hot_selector
        self._latest = latest_selector
        self._personalization = personalization
        self._config = config or FeedConfig()
        self._rng = rng or random.Random(self._config.shuffle_seed)  # noqa: S311
        self._max_workers = max_workers
        self._metrics = FeedMetrics.get_instance()
        self._log = logger.bind(component="feed", subcomponent="composer")

    def compose(
        self,
        tab: FeedTab | str = FeedTab.RECOMMEND,
        skip: int = 0,
        take: int = 20,
        user_id: str | None = None,
    ) -> FeedPage:
        """Compose one feed page.

        Args:
            tab: Feed tab; unknown tabs yield an empty page.
            skip: Items to skip in the composed window.
            take: Page size.
            user_id: Signed-in user, enabling the personalized bucket.

        Returns:
            The feed page.

        Raises:
            StoreUnavailableError: If a direct tab's family cannot be read.
        """
        skip = max(skip, 0)
        take = max(take, 0)
        try:
            resolved = FeedTab(tab)
        except ValueError:
            self._log.warning("unknown_feed_tab", tab=str(tab))
            self._metrics.record_request("feed", str(tab), 0)
            return FeedPage()

        if resolved.is_composed:
            page = self._compose_mixed(skip, take, user_id)
        else:
            page = self._compose_direct(resolved, skip, take)

        self._metrics.record_request("feed", resolved.value, len(page.items))
        return page

    def _compose_direct(self, tab: FeedTab, skip: int, take: int) -> FeedPage:
        content_type = TAB_FAMILIES[tab]
        where = family_filter(content_type)
        try:
            store = store_for(self._stores, content_type)
            items = store.find_many(where=where, order_by=RECENCY, skip=skip, take=take)
            total = store.count(where)
        except StoreUnavailableError:
            raise
        except Exception as e:
            self._log.error(
                "feed_by_type_failed",
                tab=tab.value,
                error=str(e),
            )
            raise StoreUnavailableError(content_type.value, str(e)) from e

        self._log.info(
            "feed_composed",
            tab=tab.value,
            skip=skip,
            take=take,
            items=len(items),
            total=total,
        )
        return FeedPage(items=items, total=total, corpus_total=total)

    def _compose_mixed(self, skip: int, take: int, user_id: str | None) -> FeedPage:
        request_id = str(uuid.uuid4())[:8]
        machine = ComposeStateMachine(request_id)
        allocation = allocate_buckets(take, user_id is not None, self._config)

        branches: list[Branch[list[ContentItem]]] = [
            Branch(name="hot", call=lambda: self._hot.select(allocation.hot), default=[]),
            Branch(
                name="latest",
                call=lambda: self._latest.select(allocation.latest),
                default=[],
            ),
        ]
        if user_id is not None and self._personalization is not None:
            personalization = self._personalization
            branches.append(
                Branch(
                    name="personalized",
                    call=lambda: personalization.select(
                        user_id, allocation.personalized
                    ).items,
                    default=[],
                )
            )
        outcomes = run_all_settled(branches, max_workers=3, component="feed")
        corpus_total = self._corpus_total()
        machine.transition_to(ComposeState.BUCKETS_FETCHED)

        merged = [item for outcome in outcomes for item in outcome.value]
        machine.transition_to(ComposeState.MERGED)

        unique = dedupe(merged)
        machine.transition_to(ComposeState.DEDUPED)

        shuffled = shuffle_items(unique, self._rng)
        machine.transition_to(ComposeState.SHUFFLED)

        page_items = shuffled[skip : skip + take]
        machine.transition_to(ComposeState.PAGINATED)

        self._log.info(
            "feed_composed",
            request_id=request_id,
            skip=skip,
            take=take,
            signed_in=user_id is not None,
            hot=len(outcomes[0].value),
            latest=len(outcomes[1].value),
            personalized=len(outcomes[2].value) if len(outcomes) > 2 else 0,
            merged=len(merged),
            unique=len(unique),
            items=len(page_items),
        )
        return FeedPage(items=page_items, total=len(shuffled), corpus_total=corpus_total)

    def _corpus_total(self) -> int:
        """Exact count of eligible items across the composed families."""
        outcomes = run_all_settled(
            [
                Branch(
                    name=f"count:{ct.value}",
                    call=lambda ct=ct: store_for(self._stores, ct).count(
                        family_filter(ct)
                    ),
                    default=0,
                )
                for ct in LATEST_FAMILIES
            ],
            max_workers=self._max_workers,
            component="feed",
        )
        return sum(o.value for o in outcomes)
