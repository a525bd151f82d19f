"""Discovery page composer.

Single-family pages over-fetch, score and truncate (hot) or list by
recency (latest). The mixed "all" page pulls a slice from six families,
re-sorts the union with the cross-family score, and reports the sum of the
six family counts as its total. Pinned items ride alongside as an overlay.
"""

import math
from collections.abc import Mapping
from datetime import UTC, datetime

import structlog

from src.config.schemas.engine import DiscoveryConfig
from src.discovery.models import (
    DISCOVERY_FAMILIES,
    MIXED_FAMILIES,
    DiscoveryPage,
    DiscoveryType,
    SortType,
)
from src.feed.fanout import Branch, run_all_settled
from src.feed.metrics import FeedMetrics
from src.feed.selectors import RECENCY, family_filter, store_for
from src.ranking.hotness import HotnessScorer
from src.store.models import ContentItem, ContentType, PinnedItem
from src.store.protocols import ContentStore, PinService


logger = structlog.get_logger()

_EPOCH = datetime.min.replace(tzinfo=UTC)


def clamp_page(skip: int, take: int, max_take: int = 100) -> tuple[int, int]:
    """Clamp pagination to ``skip >= 0`` and ``1 <= take <= max_take``."""
    return max(0, skip), max(1, min(max_take, take))


def is_relevant_news(
    item: ContentItem, marker: str, relevant_tags: frozenset[str]
) -> bool:
    """Relevance gate for news stories.

    Args:
        item: News item.
        marker: Summary marker set by the upstream filter.
        relevant_tags: Lower-cased tags that also flag a story.

    Returns:
        True if the story should be shown.
    """
    if marker and marker in item.summary:
        return True
    return any(tag.lower() in relevant_tags for tag in item.tags)


def mixed_page_plan(
    skip: int, take: int, config: DiscoveryConfig | None = None
) -> tuple[int, int]:
    """Per-family (skip, take) for the mixed page.

    Args:
        skip: Outer page offset.
        take: Outer page size.
        config: Mixed-mode constants.

    Returns:
        Tuple of (per-family skip, per-family take).
    """
    cfg = config or DiscoveryConfig()
    fetch = skip + take
    split = max(1, math.ceil(fetch / cfg.mixed_families))
    multiplier = (
        cfg.mixed_multiplier if skip < cfg.mixed_deep_skip else cfg.mixed_deep_multiplier
    )
    return math.floor(skip / cfg.mixed_families), math.ceil(split * multiplier)


class DiscoveryComposer:
    """Composes discovery pages."""

    def __init__(  # noqa: PLR0913
        self,
        stores: Mapping[ContentType, ContentStore],
        scorer: HotnessScorer,
        pin_service: PinService | None = None,
        config: DiscoveryConfig | None = None,
        max_workers: int = 6,
    ) -> None:
        """Initialize the composer.

        Args:
            stores: Content adapters by family.
            scorer: Hotness scorer.
            pin_service: Source of pinned items; None disables the overlay.
            config: Discovery settings.
            max_workers: Fan-out pool size.
        """
        self._stores = stores
        self._scorer = scorer
        self._pins = pin_service
        self._config = config or DiscoveryConfig()
        self._relevant_tags = frozenset(t.lower() for t in self._config.news_relevant_tags)
        self._max_workers = max_workers
        self._metrics = FeedMetrics.get_instance()
        self._log = logger.bind(component="discovery", subcomponent="composer")

    def compose(
        self,
        content_type: DiscoveryType | str = DiscoveryType.ALL,
        sort_type: SortType | str = SortType.HOT,
        skip: int = 0,
        take: int = 20,
    ) -> DiscoveryPage:
        """Compose a discovery page.

        Never raises: any unexpected error yields an empty page.

        Args:
            content_type: Content selector; unknown values mean "all".
            sort_type: "hot" or "latest"; unknown values mean "hot".
            skip: Page offset, clamped to >= 0.
            take: Page size, clamped to [1, max_take].

        Returns:
            The discovery page.
        """
        skip, take = clamp_page(skip, take, self._config.max_take)
        selector = self._parse_type(content_type)
        sort = SortType(sort_type) if sort_type in set(SortType) else SortType.HOT

        try:
            if selector == DiscoveryType.ALL:
                items, total = self._compose_mixed(sort, skip, take)
            elif selector == DiscoveryType.NEWS:
                items, total = self._compose_news(sort, skip, take)
            else:
                items, total = self._compose_family(
                    DISCOVERY_FAMILIES[selector], sort, skip, take
                )
        except Exception as e:  # noqa: BLE001
            self._log.error(
                "discovery_failed",
                content_type=selector.value,
                sort_type=sort.value,
                error=str(e),
            )
            self._metrics.record_empty_page()
            return DiscoveryPage()

        pinned = self._pinned(selector) if selector.has_pinned_overlay else []
        self._metrics.record_request("discovery", selector.value, len(items))
        self._log.info(
            "discovery_composed",
            content_type=selector.value,
            sort_type=sort.value,
            skip=skip,
            take=take,
            items=len(items),
            total=total,
            pinned=len(pinned),
        )
        return DiscoveryPage(items=items, total=total, pinned_items=pinned)

    def _parse_type(self, content_type: DiscoveryType | str) -> DiscoveryType:
        try:
            return DiscoveryType(content_type)
        except ValueError:
            self._log.warning("unknown_discovery_type", content_type=str(content_type))
            return DiscoveryType.ALL

    def _overfetch(self, content_type: ContentType) -> int:
        if content_type == ContentType.POST:
            return self._config.post_overfetch
        return self._config.hot_overfetch

    def _fetch(
        self,
        content_type: ContentType,
        sort: SortType,
        skip: int,
        take: int,
        overfetch: int,
    ) -> list[ContentItem]:
        """One family's slice: hot over-fetches then ranks, latest lists by recency."""
        store = store_for(self._stores, content_type)
        where = family_filter(content_type)
        if sort == SortType.HOT:
            candidates = store.find_many(where=where, skip=skip, take=take * overfetch)
            return self._scorer.top(candidates, take)
        return store.find_many(where=where, order_by=RECENCY, skip=skip, take=take)

    def _count(self, content_type: ContentType) -> int:
        return store_for(self._stores, content_type).count(family_filter(content_type))

    def _compose_family(
        self, content_type: ContentType, sort: SortType, skip: int, take: int
    ) -> tuple[list[ContentItem], int]:
        items_outcome, count_outcome = run_all_settled(
            [
                Branch(
                    name=content_type.value,
                    call=lambda: self._fetch(
                        content_type, sort, skip, take, self._overfetch(content_type)
                    ),
                    default=[],
                ),
                Branch(
                    name=f"count:{content_type.value}",
                    call=lambda: self._count(content_type),
                    default=0,
                ),
            ],
            max_workers=2,
            component="discovery",
        )
        return items_outcome.value, count_outcome.value

    def _compose_news(
        self, sort: SortType, skip: int, take: int
    ) -> tuple[list[ContentItem], int]:
        store = store_for(self._stores, ContentType.NEWS)
        fetch = take * self._config.news_overfetch
        order = None if sort == SortType.HOT else RECENCY
        candidates = store.find_many(order_by=order, skip=skip, take=fetch)
        relevant = [
            item
            for item in candidates
            if is_relevant_news(
                item, self._config.news_relevance_marker, self._relevant_tags
            )
        ]
        if sort == SortType.HOT:
            items = self._scorer.top(relevant, take)
        else:
            items = relevant[:take]
        self._log.debug(
            "news_filtered",
            candidates=len(candidates),
            relevant=len(relevant),
        )
        # Total is the filtered window size; an exact count would scan every story
        return items, len(relevant)

    def _compose_mixed(
        self, sort: SortType, skip: int, take: int
    ) -> tuple[list[ContentItem], int]:
        per_skip, per_take = mixed_page_plan(skip, take, self._config)
        branches: list[Branch] = [
            Branch(
                name=ct.value,
                call=lambda ct=ct: self._fetch(
                    ct, sort, per_skip, per_take, self._config.hot_overfetch
                ),
                default=[],
            )
            for ct in MIXED_FAMILIES
        ]
        branches.extend(
            Branch(name=f"count:{ct.value}", call=lambda ct=ct: self._count(ct), default=0)
            for ct in MIXED_FAMILIES
        )
        outcomes = run_all_settled(
            branches, max_workers=self._max_workers, component="discovery"
        )
        family_outcomes = outcomes[: len(MIXED_FAMILIES)]
        count_outcomes = outcomes[len(MIXED_FAMILIES) :]

        merged: list[ContentItem] = [
            item for outcome in family_outcomes for item in outcome.value
        ]
        if sort == SortType.HOT:
            ranked = [s.item for s in self._scorer.rank_generic(merged)]
        else:
            ranked = sorted(
                merged, key=lambda i: i.published_at or _EPOCH, reverse=True
            )

        total = sum(outcome.value for outcome in count_outcomes)
        self._log.debug(
            "mixed_plan",
            per_skip=per_skip,
            per_take=per_take,
            merged=len(merged),
            failed=[o.name for o in outcomes if not o.ok],
        )
        return ranked[skip : skip + take], total

    def _pinned(self, selector: DiscoveryType) -> list[PinnedItem]:
        if self._pins is None:
            return []
        family = ContentType.NEWS if selector == DiscoveryType.NEWS else None
        try:
            return self._pins.get_pinned_items(family)
        except Exception as e:  # noqa: BLE001
            self._log.error("pinned_overlay_failed", error=str(e))
            return []
