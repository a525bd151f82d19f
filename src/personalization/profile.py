"""Behavior profile construction."""

from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime, timedelta

import structlog

from src.config.schemas.engine import PersonalizationConfig
from src.feed.fanout import Branch, run_all_settled
from src.personalization.models import PersonalizationProfile
from src.store.models import BehaviorAction, ContentItem, ContentType
from src.store.protocols import BehaviorLog, ContentStore, FavoriteStore


logger = structlog.get_logger()

PROFILE_ACTIONS: frozenset[BehaviorAction] = frozenset(
    {BehaviorAction.VIEW, BehaviorAction.FAVORITE, BehaviorAction.COMMENT}
)

# Families whose tags feed the favorite-tag profile
TAGGED_FAMILIES: tuple[ContentType, ...] = (
    ContentType.PAPER,
    ContentType.REPO,
    ContentType.JOB,
)


def top_by_frequency(values: Iterable[str], limit: int) -> list[str]:
    """Most frequent values, ties in first-seen order.

    Args:
        values: Values to count.
        limit: Number to keep.

    Returns:
        Up to ``limit`` values, most frequent first.
    """
    return [value for value, _ in Counter(values).most_common(limit)]


class ProfileBuilder:
    """Builds a ``PersonalizationProfile`` from the behavior log and favorites."""

    def __init__(  # noqa: PLR0913
        self,
        behavior_log: BehaviorLog,
        favorites: FavoriteStore,
        stores: Mapping[ContentType, ContentStore],
        config: PersonalizationConfig | None = None,
        max_workers: int = 4,
        now: datetime | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            behavior_log: Behavior log reader.
            favorites: Favorites reader.
            stores: Content adapters, used to resolve favorited items.
            config: Window and limit settings.
            max_workers: Fan-out pool size for favorite lookups.
            now: Fixed reference time; None uses the clock.
        """
        self._behavior_log = behavior_log
        self._favorites = favorites
        self._stores = stores
        self._config = config or PersonalizationConfig()
        self._max_workers = max_workers
        self._now = now
        self._log = logger.bind(component="personalization", subcomponent="profile")

    def _window_start(self) -> datetime:
        now = self._now or datetime.now(UTC)
        return now - timedelta(days=self._config.window_days)

    def build(self, user_id: str) -> PersonalizationProfile:
        """Build the profile for a user.

        Args:
            user_id: User to profile.

        Returns:
            The user's profile; empty lists when there is no history.
        """
        since = self._window_start()
        cfg = self._config

        actions = self._behavior_log.find_actions(
            user_id, PROFILE_ACTIONS, since, cfg.max_actions
        )
        favorite_types = [
            ContentType(t)
            for t in top_by_frequency(
                (a.content_type.value for a in actions), cfg.max_profile_types
            )
        ]

        saved_types = self._saved_types(user_id)
        favorite_tags = self._favorite_tags(user_id)
        favorite_authors = self._favorite_authors(user_id)
        most_viewed_type = self._most_viewed_type(user_id, since)

        profile = PersonalizationProfile(
            favorite_types=favorite_types,
            saved_types=saved_types,
            favorite_tags=favorite_tags,
            favorite_authors=favorite_authors,
            most_viewed_type=most_viewed_type,
        )
        self._log.debug(
            "profile_built",
            user_id=user_id,
            actions=len(actions),
            favorite_types=[t.value for t in favorite_types],
            saved_types=[t.value for t in saved_types],
            favorite_tags=len(favorite_tags),
            favorite_authors=len(favorite_authors),
        )
        return profile

    def _saved_types(self, user_id: str) -> list[ContentType]:
        seen: list[ContentType] = []
        for favorite in self._favorites.find_favorites(user_id):
            if favorite.content_type not in seen:
                seen.append(favorite.content_type)
            if len(seen) >= self._config.max_favorite_types:
                break
        return seen

    def _resolve(
        self, ids_by_type: Mapping[ContentType, list[str]]
    ) -> dict[ContentType, list[ContentItem]]:
        """Fetch favorited items per family; a failing family resolves to nothing."""
        families = [ct for ct in ids_by_type if ct in self._stores]
        outcomes = run_all_settled(
            [
                Branch(
                    name=ct.value,
                    call=lambda ct=ct: self._stores[ct].find_by_ids(ids_by_type[ct]),
                    default=[],
                )
                for ct in families
            ],
            max_workers=self._max_workers,
            component="personalization",
        )
        return dict(zip(families, (o.value for o in outcomes), strict=True))

    def _favorite_tags(self, user_id: str) -> list[str]:
        favorites = self._favorites.find_favorites(
            user_id, limit=self._config.max_favorites_scanned
        )
        ids_by_type: dict[ContentType, list[str]] = defaultdict(list)
        for favorite in favorites:
            if favorite.content_type in TAGGED_FAMILIES:
                ids_by_type[favorite.content_type].append(favorite.content_id)

        resolved = self._resolve(ids_by_type)
        tags = (
            tag
            for ct in TAGGED_FAMILIES
            for item in resolved.get(ct, [])
            for tag in item.tags
        )
        return top_by_frequency(tags, self._config.max_favorite_tags)

    def _favorite_authors(self, user_id: str) -> list[str]:
        favorites = self._favorites.find_favorites(
            user_id, ContentType.PAPER, limit=self._config.max_favorites_scanned
        )
        if not favorites:
            return []
        resolved = self._resolve({ContentType.PAPER: [f.content_id for f in favorites]})
        authors = (
            author for item in resolved.get(ContentType.PAPER, []) for author in item.authors
        )
        return top_by_frequency(authors, self._config.max_favorite_authors)

    def _most_viewed_type(self, user_id: str, since: datetime) -> ContentType | None:
        views = self._behavior_log.find_actions(
            user_id,
            frozenset({BehaviorAction.VIEW}),
            since,
            self._config.max_actions,
        )
        distinct: dict[tuple[str, str], str] = {}
        for view in views:
            key = (view.content_type.value, view.content_id)
            distinct.setdefault(key, view.content_type.value)
            if len(distinct) >= self._config.max_recent_views:
                break
        top = top_by_frequency(distinct.values(), 1)
        return ContentType(top[0]) if top else None
