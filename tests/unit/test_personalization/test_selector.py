"""Unit tests for the personalization selector."""

from collections.abc import Generator
from unittest.mock import MagicMock

import pytest

from src.config.schemas.engine import PersonalizationConfig
from src.feed.metrics import FeedMetrics
from src.feed.selectors import LatestSelector
from src.personalization.models import PersonalizationProfile, SelectionStatus
from src.personalization.selector import (
    PersonalizationSelector,
    dedupe,
    personalization_score,
)
from src.store.memory import InMemoryBehaviorLog, InMemoryFavoriteStore
from src.store.models import (
    BehaviorAction,
    ContentType,
    FavoriteRecord,
    UserBehaviorRecord,
)
from tests.helpers.factories import make_family, make_item, make_stores
from tests.helpers.time import FIXED_NOW, days_ago


@pytest.fixture(autouse=True)
def fresh_metrics() -> Generator[None]:
    """Reset the metrics singleton around each test."""
    FeedMetrics.reset()
    yield
    FeedMetrics.reset()


class TestDedupe:
    """Tests for dedupe."""

    def test_keeps_first_occurrence(self) -> None:
        """Test the first (type, id) wins and same ids across families survive."""
        first = make_item(ContentType.PAPER, "1", title="first")
        items = [
            first,
            make_item(ContentType.VIDEO, "1"),
            make_item(ContentType.PAPER, "1", title="second"),
        ]
        unique = dedupe(items)
        assert len(unique) == 2
        assert unique[0].title == "first"


class TestPersonalizationScore:
    """Tests for personalization_score."""

    def test_boosts_add_up(self) -> None:
        """Test type, author, engagement and freshness contributions."""
        profile = PersonalizationProfile(
            favorite_types=[ContentType.PAPER], favorite_authors=["Ada"]
        )
        item = make_item(
            ContentType.PAPER, "p", age_days=3, authors=["Ada", "Bob"], view_count=0
        )
        # +10 type, +5 author, +5 fresh week
        score = personalization_score(item, profile, PersonalizationConfig(), FIXED_NOW)
        assert score == pytest.approx(20.0)

    def test_month_freshness(self) -> None:
        """Test items between one week and one month get the smaller boost."""
        item = make_item(ContentType.REPO, "r", age_days=10)
        score = personalization_score(
            item, PersonalizationProfile(), PersonalizationConfig(), FIXED_NOW
        )
        assert score == pytest.approx(2.0)

    def test_authors_only_count_for_papers(self) -> None:
        """Test author matches are ignored outside papers."""
        profile = PersonalizationProfile(favorite_authors=["Ada"])
        item = make_item(ContentType.VIDEO, "v", age_days=90, authors=["Ada"])
        score = personalization_score(item, profile, PersonalizationConfig(), FIXED_NOW)
        assert score == 0.0


class TestPersonalizationSelector:
    """Tests for PersonalizationSelector."""

    def _selector(self, stores: dict, log: object, favorites: object) -> PersonalizationSelector:
        return PersonalizationSelector(
            stores,
            log,  # type: ignore[arg-type]
            favorites,  # type: ignore[arg-type]
            LatestSelector(stores),
            now=FIXED_NOW,
        )

    def test_candidates_exclude_favorites(self) -> None:
        """Test saved items are not recommended back."""
        stores = make_stores(make_family(ContentType.PAPER, 6))
        favorites = InMemoryFavoriteStore(
            [
                FavoriteRecord(
                    user_id="u1",
                    content_type=ContentType.PAPER,
                    content_id="p0",
                    created_at=days_ago(1),
                )
            ]
        )
        selection = self._selector(stores, InMemoryBehaviorLog(), favorites).select("u1", 4)

        ids = [i.id for i in selection.items]
        assert selection.status == SelectionStatus.OK
        assert "p0" not in ids
        assert len(ids) == 4

    def test_backfills_from_most_viewed_type(self) -> None:
        """Test users without favorites get their most viewed family."""
        stores = make_stores(make_family(ContentType.REPO, 5))
        log = InMemoryBehaviorLog(
            [
                UserBehaviorRecord(
                    user_id="u1",
                    action_type=BehaviorAction.VIEW,
                    content_type=ContentType.REPO,
                    content_id="r3",
                    created_at=days_ago(1),
                )
            ]
        )
        selection = self._selector(stores, log, InMemoryFavoriteStore()).select("u1", 3)
        assert [i.type for i in selection.items] == [ContentType.REPO] * 3

    def test_empty_profile_degrades_to_latest(self) -> None:
        """Test a user with no signal gets the latest items, flagged."""
        stores = make_stores(make_family(ContentType.PAPER, 3))
        selection = self._selector(
            stores, InMemoryBehaviorLog(), InMemoryFavoriteStore()
        ).select("u1", 5)
        assert selection.degraded
        assert selection.reason == "empty profile"
        assert [i.id for i in selection.items] == ["p0"]
        assert FeedMetrics.get_instance().personalization_degraded_total == 1

    def test_failure_degrades_to_latest(self) -> None:
        """Test a broken behavior log yields the latest items, flagged."""
        stores = make_stores(make_family(ContentType.PAPER, 5))
        log = MagicMock()
        log.find_actions.side_effect = RuntimeError("behavior db down")

        selection = self._selector(stores, log, InMemoryFavoriteStore()).select("u1", 10)

        assert selection.degraded
        assert "behavior db down" in (selection.reason or "")
        assert [i.id for i in selection.items] == ["p0", "p1"]
        assert FeedMetrics.get_instance().personalization_degraded_total == 1

    def test_zero_count(self) -> None:
        """Test a zero target short-circuits."""
        selection = self._selector(
            make_stores(), InMemoryBehaviorLog(), InMemoryFavoriteStore()
        ).select("u1", 0)
        assert selection.items == []
