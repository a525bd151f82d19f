"""Unit tests for behavior profile construction."""

from src.personalization.profile import ProfileBuilder, top_by_frequency
from src.store.memory import InMemoryBehaviorLog, InMemoryFavoriteStore
from src.store.models import (
    BehaviorAction,
    ContentType,
    FavoriteRecord,
    UserBehaviorRecord,
)
from tests.helpers.factories import make_item, make_stores
from tests.helpers.time import FIXED_NOW, days_ago


def _action(
    action: BehaviorAction, content_type: ContentType, content_id: str, age_days: float = 1
) -> UserBehaviorRecord:
    return UserBehaviorRecord(
        user_id="u1",
        action_type=action,
        content_type=content_type,
        content_id=content_id,
        created_at=days_ago(age_days),
    )


def _favorite(content_type: ContentType, content_id: str, age_days: float = 1) -> FavoriteRecord:
    return FavoriteRecord(
        user_id="u1",
        content_type=content_type,
        content_id=content_id,
        created_at=days_ago(age_days),
    )


class TestTopByFrequency:
    """Tests for top_by_frequency."""

    def test_most_frequent_first(self) -> None:
        """Test counts decide order and ties keep first-seen order."""
        assert top_by_frequency(["b", "a", "b", "c", "a", "b"], 2) == ["b", "a"]
        assert top_by_frequency(["x", "y"], 5) == ["x", "y"]


class TestProfileBuilder:
    """Tests for ProfileBuilder."""

    def test_empty_history(self) -> None:
        """Test a new user gets an empty profile."""
        builder = ProfileBuilder(
            InMemoryBehaviorLog(), InMemoryFavoriteStore(), make_stores(), now=FIXED_NOW
        )
        profile = builder.build("u1")
        assert profile.is_empty
        assert profile.most_viewed_type is None

    def test_types_ranked_by_activity_in_window(self) -> None:
        """Test actions outside the window and other kinds are ignored."""
        log = InMemoryBehaviorLog(
            [
                _action(BehaviorAction.VIEW, ContentType.VIDEO, "v1"),
                _action(BehaviorAction.COMMENT, ContentType.VIDEO, "v2"),
                _action(BehaviorAction.FAVORITE, ContentType.PAPER, "p1"),
                _action(BehaviorAction.SHARE, ContentType.REPO, "r1"),
                _action(BehaviorAction.VIEW, ContentType.JOB, "j1", age_days=45),
            ]
        )
        builder = ProfileBuilder(log, InMemoryFavoriteStore(), make_stores(), now=FIXED_NOW)
        profile = builder.build("u1")
        assert profile.favorite_types == [ContentType.VIDEO, ContentType.PAPER]

    def test_most_viewed_counts_distinct_items(self) -> None:
        """Test repeated views of one item count once."""
        log = InMemoryBehaviorLog(
            [_action(BehaviorAction.VIEW, ContentType.PAPER, "p1", age_days=d / 10) for d in range(5)]
            + [
                _action(BehaviorAction.VIEW, ContentType.REPO, "r1"),
                _action(BehaviorAction.VIEW, ContentType.REPO, "r2"),
            ]
        )
        builder = ProfileBuilder(log, InMemoryFavoriteStore(), make_stores(), now=FIXED_NOW)
        assert builder.build("u1").most_viewed_type == ContentType.REPO

    def test_saved_types_distinct_newest_first(self) -> None:
        """Test saved types follow favorite recency without repeats."""
        favorites = InMemoryFavoriteStore(
            [
                _favorite(ContentType.REPO, "r1", age_days=1),
                _favorite(ContentType.PAPER, "p1", age_days=2),
                _favorite(ContentType.REPO, "r2", age_days=3),
            ]
        )
        builder = ProfileBuilder(InMemoryBehaviorLog(), favorites, make_stores(), now=FIXED_NOW)
        assert builder.build("u1").saved_types == [ContentType.REPO, ContentType.PAPER]

    def test_favorite_authors_and_tags(self) -> None:
        """Test authors come from papers and tags from papers, repos and jobs."""
        stores = make_stores(
            [
                make_item(ContentType.PAPER, "p1", authors=["Ada", "Alan"], tags=["cs.LG"]),
                make_item(ContentType.PAPER, "p2", authors='["Ada"]', tags=["cs.CL"]),
                make_item(ContentType.REPO, "r1", tags=["cs.LG", "rust"]),
                make_item(ContentType.VIDEO, "v1", tags=["vlog"]),
            ]
        )
        favorites = InMemoryFavoriteStore(
            [
                _favorite(ContentType.PAPER, "p1"),
                _favorite(ContentType.PAPER, "p2"),
                _favorite(ContentType.REPO, "r1"),
                _favorite(ContentType.VIDEO, "v1"),
            ]
        )
        builder = ProfileBuilder(InMemoryBehaviorLog(), favorites, stores, now=FIXED_NOW)
        profile = builder.build("u1")

        assert profile.favorite_authors == ["Ada", "Alan"]
        assert profile.favorite_tags[0] == "cs.LG"
        assert "vlog" not in profile.favorite_tags
