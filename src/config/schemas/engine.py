"""Engine configuration schema.

Every tunable constant of the ranking engine lives here so deployments can
override them from YAML. Defaults reproduce the production behaviour.
"""

from typing import Annotated

from pydantic import Field, field_validator, model_validator

from src.config.schemas.base import StrictBaseModel
from src.store.models import COUNTER_FIELDS


PositiveDays = Annotated[float, Field(gt=0.0, le=3650.0)]
Weight = Annotated[float, Field(ge=0.0, le=100.0)]


class TypeWeights(StrictBaseModel):
    """Per-counter weights and recency half-life for one family.

    Attributes:
        weights: Mapping of counter name (a ``ContentItem`` field) to weight.
        half_life_days: Decay half-life in days.
    """

    weights: dict[str, Weight] = Field(default_factory=dict)
    half_life_days: PositiveDays = 30.0

    @field_validator("weights")
    @classmethod
    def validate_counters(cls, v: dict[str, float]) -> dict[str, float]:
        """Weight keys must name engagement counters."""
        unknown = sorted(set(v) - COUNTER_FIELDS)
        if unknown:
            msg = f"Unknown counters: {unknown}"
            raise ValueError(msg)
        return v


def _paper() -> TypeWeights:
    return TypeWeights(
        weights={"view_count": 0.2, "favorite_count": 0.2, "citation_count": 0.4},
        half_life_days=30,
    )


def _video() -> TypeWeights:
    return TypeWeights(
        weights={"play_count": 0.4, "view_count": 0.2, "favorite_count": 0.2},
        half_life_days=30,
    )


def _repo() -> TypeWeights:
    return TypeWeights(
        weights={"stars_count": 0.5, "forks_count": 0.2, "favorite_count": 0.1},
        half_life_days=60,
    )


def _model() -> TypeWeights:
    return TypeWeights(
        weights={"downloads": 0.5, "likes": 0.2, "favorite_count": 0.1},
        half_life_days=45,
    )


def _job() -> TypeWeights:
    return TypeWeights(
        weights={"view_count": 0.4, "favorite_count": 0.3},
        half_life_days=7,
    )


def _post() -> TypeWeights:
    return TypeWeights(
        weights={"view_count": 0.3, "like_count": 0.4, "comment_count": 0.2},
        half_life_days=7,
    )


def _news() -> TypeWeights:
    return TypeWeights(
        weights={"view_count": 0.3, "favorite_count": 0.2, "heat": 0.3},
        half_life_days=3,
    )


class GenericWeights(StrictBaseModel):
    """Weights for the cross-family score used in mixed discovery.

    ``like_or_favorite`` applies to ``like_count`` when non-zero, otherwise
    to ``favorite_count``; ``favorite`` is then added on top.
    """

    view: Weight = 0.25
    like_or_favorite: Weight = 0.25
    comment: Weight = 0.15
    share: Weight = 0.1
    favorite: Weight = 0.1
    stars: Weight = 0.3
    downloads: Weight = 0.2
    citation: Weight = 0.15
    half_life_days: PositiveDays = 30.0


class HotnessConfig(StrictBaseModel):
    """Weight tables for the hotness scorer."""

    paper: TypeWeights = Field(default_factory=_paper)
    video: TypeWeights = Field(default_factory=_video)
    repo: TypeWeights = Field(default_factory=_repo)
    model: TypeWeights = Field(default_factory=_model)
    job: TypeWeights = Field(default_factory=_job)
    post: TypeWeights = Field(default_factory=_post)
    news: TypeWeights = Field(default_factory=_news)
    generic: GenericWeights = Field(default_factory=GenericWeights)

    def for_type(self, content_type: str) -> TypeWeights:
        """Get the weight table for a family.

        Args:
            content_type: Family value, e.g. "paper".

        Returns:
            The family's weights.

        Raises:
            KeyError: If the family has no table.
        """
        table = getattr(self, content_type, None)
        if not isinstance(table, TypeWeights):
            raise KeyError(content_type)
        return table


Ratio = Annotated[float, Field(ge=0.0, le=1.0)]


class FeedConfig(StrictBaseModel):
    """Recommendation feed composition.

    Attributes:
        hot_ratio: Share of ``take`` given to the hot bucket.
        latest_ratio: Share given to the latest bucket.
        personalized_ratio: Share given to the personalized bucket.
        hot_overfetch: Multiplier on each hot family's share.
        shuffle_seed: Fixed shuffle seed; None for a fresh permutation.
    """

    hot_ratio: Ratio = 0.4
    latest_ratio: Ratio = 0.3
    personalized_ratio: Ratio = 0.3
    hot_overfetch: Annotated[int, Field(ge=1, le=10)] = 2
    shuffle_seed: int | None = None

    @model_validator(mode="after")
    def validate_ratios(self) -> "FeedConfig":
        """Bucket ratios must not exceed the page."""
        total = self.hot_ratio + self.latest_ratio + self.personalized_ratio
        if total > 1.0 + 1e-9:
            msg = f"Bucket ratios sum to {total:.2f}, must be <= 1.0"
            raise ValueError(msg)
        return self


class PersonalizationConfig(StrictBaseModel):
    """Behavior profile and candidate scoring."""

    window_days: Annotated[int, Field(ge=1, le=365)] = 30
    max_actions: Annotated[int, Field(ge=1)] = 1000
    max_profile_types: Annotated[int, Field(ge=1)] = 5
    max_favorite_types: Annotated[int, Field(ge=1)] = 10
    max_favorites_scanned: Annotated[int, Field(ge=1)] = 50
    max_favorite_authors: Annotated[int, Field(ge=1)] = 10
    max_favorite_tags: Annotated[int, Field(ge=1)] = 10
    max_candidate_types: Annotated[int, Field(ge=1)] = 3
    candidate_overfetch: Annotated[int, Field(ge=1, le=10)] = 2
    max_recent_views: Annotated[int, Field(ge=1)] = 100
    type_boost: Weight = 10.0
    author_boost: Weight = 5.0
    view_log_weight: Weight = 2.0
    favorite_log_weight: Weight = 3.0
    fresh_week_boost: Weight = 5.0
    fresh_month_boost: Weight = 2.0


class DiscoveryConfig(StrictBaseModel):
    """Discovery page limits and over-fetch factors.

    Attributes:
        max_take: Upper clamp for ``take``.
        hot_overfetch: Single-family hot over-fetch multiplier.
        post_overfetch: Over-fetch for community posts.
        news_overfetch: Over-fetch for news (before the relevance gate).
        mixed_families: Divisor used to split a mixed page.
        mixed_deep_skip: ``skip`` at which the mixed multiplier drops.
        mixed_multiplier: Mixed over-fetch for shallow pages.
        mixed_deep_multiplier: Mixed over-fetch for deep pages.
        news_relevance_marker: Summary marker that flags a relevant story.
        news_relevant_tags: Tags that also flag a relevant story.
    """

    max_take: Annotated[int, Field(ge=1, le=1000)] = 100
    hot_overfetch: Annotated[int, Field(ge=1, le=10)] = 2
    post_overfetch: Annotated[int, Field(ge=1, le=10)] = 3
    news_overfetch: Annotated[int, Field(ge=1, le=20)] = 5
    mixed_families: Annotated[int, Field(ge=1)] = 5
    mixed_deep_skip: Annotated[int, Field(ge=0)] = 100
    mixed_multiplier: Annotated[float, Field(ge=1.0, le=10.0)] = 2.0
    mixed_deep_multiplier: Annotated[float, Field(ge=1.0, le=10.0)] = 1.5
    news_relevance_marker: str = "[AI相关]"
    news_relevant_tags: list[str] = Field(
        default_factory=lambda: ["ai", "llm", "machine-learning", "人工智能"]
    )


class SubscriptionConfig(StrictBaseModel):
    """Subscription sync limits."""

    sync_fetch_limit: Annotated[int, Field(ge=1, le=1000)] = 100
    new_window_hours: Annotated[int, Field(ge=1)] = 24
    new_count_cap: Annotated[int, Field(ge=0)] = 20


class EngineConfig(StrictBaseModel):
    """Top-level engine configuration."""

    hotness: HotnessConfig = Field(default_factory=HotnessConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    personalization: PersonalizationConfig = Field(
        default_factory=PersonalizationConfig
    )
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    subscription: SubscriptionConfig = Field(default_factory=SubscriptionConfig)
