"""Hotness scoring for content items.

score = sum(weight_i * counter_i) * decay(published_at, half_life)

Each family has its own weight table and half-life (see
``src.config.schemas.engine.HotnessConfig``). A generic table scores mixed
pages where items from several families compete.
"""

from collections.abc import Iterable
from datetime import UTC, datetime

import structlog

from src.config.schemas.engine import GenericWeights, HotnessConfig, TypeWeights
from src.ranking.decay import time_decay
from src.ranking.models import ScoredItem
from src.store.models import ContentItem


logger = structlog.get_logger()


def engagement_score(item: ContentItem, table: TypeWeights) -> float:
    """Weighted sum of an item's counters.

    Args:
        item: Item to score.
        table: Family weight table; keys name ``ContentItem`` counters.

    Returns:
        Undecayed engagement score.
    """
    return sum(
        weight * float(getattr(item, counter))
        for counter, weight in table.weights.items()
    )


def generic_engagement_score(item: ContentItem, table: GenericWeights) -> float:
    """Family-agnostic engagement score used for mixed pages."""
    like_or_favorite = item.like_count or item.favorite_count
    return (
        item.view_count * table.view
        + like_or_favorite * table.like_or_favorite
        + item.comment_count * table.comment
        + item.share_count * table.share
        + item.favorite_count * table.favorite
        + item.stars_count * table.stars
        + item.downloads * table.downloads
        + item.citation_count * table.citation
    )


class HotnessScorer:
    """Scores and ranks items by decayed engagement.

    Ranking is stable: items with equal scores keep their input order.
    """

    def __init__(
        self,
        config: HotnessConfig | None = None,
        now: datetime | None = None,
    ) -> None:
        """Initialize the scorer.

        Args:
            config: Weight tables; defaults to the production tables.
            now: Fixed reference time; None uses the clock at each call.
        """
        self._config = config or HotnessConfig()
        self._now = now
        self._log = logger.bind(component="ranking", subcomponent="hotness")

    @property
    def config(self) -> HotnessConfig:
        """Get the weight tables."""
        return self._config

    def _reference_time(self) -> datetime:
        return self._now or datetime.now(UTC)

    def score_item(self, item: ContentItem) -> ScoredItem:
        """Score an item with its own family's table.

        Args:
            item: Item to score.

        Returns:
            ScoredItem carrying score and decay.
        """
        table = self._config.for_type(item.type.value)
        decay = time_decay(item.published_at, table.half_life_days, self._reference_time())
        return ScoredItem(item=item, score=engagement_score(item, table) * decay, decay=decay)

    def score(self, item: ContentItem) -> float:
        """Family hot score of an item."""
        return self.score_item(item).score

    def generic_score_item(self, item: ContentItem) -> ScoredItem:
        """Score an item with the generic cross-family table."""
        table = self._config.generic
        decay = time_decay(item.published_at, table.half_life_days, self._reference_time())
        return ScoredItem(
            item=item,
            score=generic_engagement_score(item, table) * decay,
            decay=decay,
        )

    def rank(self, items: Iterable[ContentItem]) -> list[ScoredItem]:
        """Rank items by family hot score, highest first."""
        scored = [self.score_item(item) for item in items]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    def rank_generic(self, items: Iterable[ContentItem]) -> list[ScoredItem]:
        """Rank mixed-family items by the generic score, highest first."""
        scored = [self.generic_score_item(item) for item in items]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    def top(self, items: Iterable[ContentItem], count: int) -> list[ContentItem]:
        """Return the ``count`` hottest items.

        Args:
            items: Candidates.
            count: Number to keep.

        Returns:
            Items in descending score order.
        """
        ranked = self.rank(items)
        self._log.debug(
            "items_ranked",
            candidates=len(ranked),
            kept=min(count, len(ranked)),
        )
        return [s.item for s in ranked[: max(count, 0)]]
