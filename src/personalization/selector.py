"""Personalized candidate selection and scoring."""

import math
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta

import structlog

from src.config.schemas.engine import PersonalizationConfig
from src.feed.fanout import Branch, run_all_settled
from src.feed.metrics import FeedMetrics
from src.feed.selectors import RECENCY, LatestSelector, family_filter, store_for
from src.personalization.models import (
    PersonalizationProfile,
    PersonalizedSelection,
    SelectionStatus,
)
from src.personalization.profile import ProfileBuilder
from src.store.models import ContentItem, ContentType, coerce_timestamp
from src.store.protocols import BehaviorLog, ContentStore, FavoriteStore


logger = structlog.get_logger()


def dedupe(items: list[ContentItem]) -> list[ContentItem]:
    """Drop repeated (type, id) keys, keeping the first occurrence."""
    seen: set[tuple[str, str]] = set()
    unique: list[ContentItem] = []
    for item in items:
        if item.key not in seen:
            seen.add(item.key)
            unique.append(item)
    return unique


def personalization_score(
    item: ContentItem,
    profile: PersonalizationProfile,
    config: PersonalizationConfig,
    now: datetime,
) -> float:
    """Score a candidate against a profile.

    Args:
        item: Candidate item.
        profile: User profile.
        config: Boost weights.
        now: Reference time for freshness.

    Returns:
        Personal relevance score; higher is better.
    """
    score = 0.0
    if item.type in profile.favorite_types:
        score += config.type_boost
    if item.type == ContentType.PAPER:
        score += config.author_boost * sum(
            1 for author in item.authors if author in profile.favorite_authors
        )

    score += math.log(item.view_count + 1) * config.view_log_weight
    score += math.log(item.favorite_count + 1) * config.favorite_log_weight

    published = coerce_timestamp(item.published_at)
    if published is not None:
        age = now - published
        if age < timedelta(days=7):
            score += config.fresh_week_boost
        elif age < timedelta(days=30):
            score += config.fresh_month_boost
    return score


class PersonalizationSelector:
    """Selects personalized items for a user.

    Personalization is best-effort: any failure yields a DEGRADED selection
    holding the latest-items fallback instead of an error.
    """

    def __init__(  # noqa: PLR0913
        self,
        stores: Mapping[ContentType, ContentStore],
        behavior_log: BehaviorLog,
        favorites: FavoriteStore,
        latest_selector: LatestSelector,
        config: PersonalizationConfig | None = None,
        max_workers: int = 4,
        now: datetime | None = None,
    ) -> None:
        """Initialize the selector.

        Args:
            stores: Content adapters by family.
            behavior_log: Behavior log reader.
            favorites: Favorites reader.
            latest_selector: Fallback selector.
            config: Personalization settings.
            max_workers: Fan-out pool size.
            now: Fixed reference time; None uses the clock.
        """
        self._stores = stores
        self._favorites = favorites
        self._latest = latest_selector
        self._config = config or PersonalizationConfig()
        self._max_workers = max_workers
        self._now = now
        self._profiles = ProfileBuilder(
            behavior_log,
            favorites,
            stores,
            config=self._config,
            max_workers=max_workers,
            now=now,
        )
        self._log = logger.bind(component="personalization", subcomponent="selector")

    def select(self, user_id: str, count: int) -> PersonalizedSelection:
        """Select up to ``count`` personalized items.

        Args:
            user_id: User to personalize for.
            count: Bucket target.

        Returns:
            An OK selection, or a DEGRADED one with latest items.
        """
        if count <= 0:
            return PersonalizedSelection(items=[])

        try:
            profile = self._profiles.build(user_id)
            items = None if profile.is_empty else self._select(user_id, profile, count)
        except Exception as e:  # noqa: BLE001
            return self._degrade(user_id, count, f"{type(e).__name__}: {e}")

        if items is None:
            return self._degrade(user_id, count, "empty profile")

        self._log.info(
            "personalization_selected",
            user_id=user_id,
            target=count,
            selected=len(items),
        )
        return PersonalizedSelection(items=items)

    def _degrade(self, user_id: str, count: int, reason: str) -> PersonalizedSelection:
        self._log.warning(
            "personalization_degraded",
            user_id=user_id,
            reason=reason,
        )
        FeedMetrics.get_instance().record_personalization_degraded()
        return PersonalizedSelection(
            items=self._latest.select(count),
            status=SelectionStatus.DEGRADED,
            reason=reason,
        )

    def _select(
        self, user_id: str, profile: PersonalizationProfile, count: int
    ) -> list[ContentItem]:
        now = self._now or datetime.now(UTC)

        candidates: list[ContentItem] = []
        if profile.saved_types:
            per_type = math.ceil(count / len(profile.saved_types))
            families = profile.saved_types[: self._config.max_candidate_types]
            outcomes = run_all_settled(
                [
                    Branch(
                        name=ct.value,
                        call=lambda ct=ct: self._candidates(user_id, ct, per_type),
                        default=[],
                    )
                    for ct in families
                ],
                max_workers=self._max_workers,
                component="personalization",
            )
            candidates = [item for o in outcomes for item in o.value]

        if len(candidates) < count and profile.most_viewed_type is not None:
            candidates.extend(
                self._candidates(
                    user_id, profile.most_viewed_type, count - len(candidates)
                )
            )

        scored = [
            (personalization_score(item, profile, self._config, now), item)
            for item in dedupe(candidates)
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [item for _, item in scored[:count]]

    def _candidates(
        self, user_id: str, content_type: ContentType, count: int
    ) -> list[ContentItem]:
        """Newest items of a family the user has not saved."""
        items = store_for(self._stores, content_type).find_many(
            where=family_filter(content_type),
            order_by=RECENCY,
            take=count * self._config.candidate_overfetch,
        )
        saved = {
            f.content_id
            for f in self._favorites.find_favorites(user_id, content_type)
        }
        return [item for item in items if item.id not in saved][:count]
