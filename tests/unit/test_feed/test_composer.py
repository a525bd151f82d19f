"""Unit tests for the feed composer."""

import random
from collections.abc import Generator
from unittest.mock import MagicMock

import pytest

from src.feed.composer import FeedComposer, allocate_buckets, shuffle_items
from src.feed.metrics import FeedMetrics
from src.feed.selectors import HotSelector, LatestSelector
from src.personalization.models import PersonalizedSelection
from src.ranking.hotness import HotnessScorer
from src.store.errors import StoreUnavailableError
from src.store.memory import InMemoryContentStore
from src.store.models import ContentType
from tests.helpers.factories import make_family, make_item, make_stores
from tests.helpers.time import FIXED_NOW


FEED_FAMILIES = (
    ContentType.PAPER,
    ContentType.VIDEO,
    ContentType.REPO,
    ContentType.MODEL,
    ContentType.JOB,
)


@pytest.fixture(autouse=True)
def fresh_metrics() -> Generator[None]:
    """Reset the metrics singleton around each test."""
    FeedMetrics.reset()
    yield
    FeedMetrics.reset()


@pytest.fixture
def stores() -> dict[ContentType, InMemoryContentStore]:
    """Twenty items in each composed family."""
    items = [item for ct in FEED_FAMILIES for item in make_family(ct, 20)]
    return make_stores(items)


def build_composer(
    stores: dict,
    personalization: object | None = None,
    seed: int = 7,
) -> FeedComposer:
    """Composer over ``stores`` with a seeded shuffle."""
    scorer = HotnessScorer(now=FIXED_NOW)
    return FeedComposer(
        stores,
        HotSelector(stores, scorer),
        LatestSelector(stores),
        personalization,  # type: ignore[arg-type]
        rng=random.Random(seed),  # noqa: S311
    )


class TestAllocateBuckets:
    """Tests for allocate_buckets."""

    def test_anonymous_hundred(self) -> None:
        """Test take=100 without a user splits 40 + 30 + 0."""
        allocation = allocate_buckets(100, signed_in=False)
        assert (allocation.hot, allocation.latest, allocation.personalized) == (40, 30, 0)
        assert allocation.total == 70

    def test_signed_in_hundred(self) -> None:
        """Test a signed-in user gets the personalized bucket."""
        allocation = allocate_buckets(100, signed_in=True)
        assert allocation.personalized == 30

    def test_small_take_floors(self) -> None:
        """Test bucket sizes are floored."""
        allocation = allocate_buckets(3, signed_in=True)
        assert (allocation.hot, allocation.latest, allocation.personalized) == (1, 0, 0)


class TestShuffleItems:
    """Tests for shuffle_items."""

    def test_permutation_and_copy(self) -> None:
        """Test shuffling keeps the same items and leaves the input alone."""
        items = make_family(ContentType.PAPER, 10)
        shuffled = shuffle_items(items, random.Random(1))  # noqa: S311
        assert sorted(i.id for i in shuffled) == sorted(i.id for i in items)
        assert [i.id for i in items] == [f"p{i}" for i in range(10)]

    def test_seeded_is_deterministic(self) -> None:
        """Test the same seed gives the same order."""
        items = make_family(ContentType.PAPER, 10)
        first = shuffle_items(items, random.Random(3))  # noqa: S311
        second = shuffle_items(items, random.Random(3))  # noqa: S311
        assert [i.id for i in first] == [i.id for i in second]


class TestFeedComposerRecommend:
    """Tests for the composed recommend tab."""

    def test_buckets_deduplicated(self, stores: dict) -> None:
        """Test hot and latest overlap is removed by (type, id)."""
        page = build_composer(stores).compose("recommend", skip=0, take=100)

        keys = [item.key for item in page.items]
        assert len(keys) == len(set(keys))
        # 40 hot + 30 latest, minus six repos and six models found by both
        assert page.total == 58
        assert len(page.items) == 58
        assert page.corpus_total == 100

    def test_pagination_over_window(self, stores: dict) -> None:
        """Test skip slices the shuffled window and total reports its size."""
        page = build_composer(stores).compose("recommend", skip=5, take=10)
        assert page.total == 7
        assert len(page.items) == 2

    def test_seeded_composition_repeats(self, stores: dict) -> None:
        """Test two composers with the same seed agree."""
        first = build_composer(stores, seed=11).compose("recommend", take=20)
        second = build_composer(stores, seed=11).compose("recommend", take=20)
        assert [i.key for i in first.items] == [i.key for i in second.items]

    def test_failing_family_leaves_others(self, stores: dict) -> None:
        """Test a broken video adapter only removes videos."""
        broken = MagicMock()
        broken.find_many.side_effect = RuntimeError("video db down")
        broken.count.side_effect = RuntimeError("video db down")
        stores[ContentType.VIDEO] = broken

        page = build_composer(stores).compose("recommend", take=100)

        families = {item.type for item in page.items}
        assert ContentType.VIDEO not in families
        assert {ContentType.PAPER, ContentType.REPO, ContentType.JOB} <= families
        assert page.corpus_total == 80
        assert FeedMetrics.get_instance().branch_failures["video"] >= 1

    def test_personalized_bucket_for_signed_in_user(self, stores: dict) -> None:
        """Test the personalized bucket is requested and merged."""
        special = make_item(ContentType.POST, "for-you")
        personalization = MagicMock()
        personalization.select.return_value = PersonalizedSelection(items=[special])

        page = build_composer(stores, personalization).compose(
            "recommend", take=100, user_id="u1"
        )

        personalization.select.assert_called_once_with("u1", 30)
        assert special.key in {item.key for item in page.items}

    def test_anonymous_skips_personalization(self, stores: dict) -> None:
        """Test no user means no personalized call."""
        personalization = MagicMock()
        build_composer(stores, personalization).compose("recommend", take=10)
        personalization.select.assert_not_called()

    def test_latest_tab_is_composed(self, stores: dict) -> None:
        """Test the latest tab also runs the bucket composer."""
        page = build_composer(stores).compose("latest", take=10)
        assert page.corpus_total == 100


class TestFeedComposerDirectTabs:
    """Tests for direct per-family tabs."""

    def test_paper_tab_by_recency(self, stores: dict) -> None:
        """Test the paper tab lists papers newest first with an exact total."""
        page = build_composer(stores).compose("paper", skip=2, take=3)
        assert [i.id for i in page.items] == ["p2", "p3", "p4"]
        assert page.total == 20

    def test_code_tab_lists_repos(self, stores: dict) -> None:
        """Test the code tab maps to repositories."""
        page = build_composer(stores).compose("code", take=2)
        assert {i.type for i in page.items} == {ContentType.REPO}

    def test_job_tab_filters_closed(self) -> None:
        """Test closed jobs are not listed or counted."""
        jobs = [
            make_item(ContentType.JOB, "a"),
            make_item(ContentType.JOB, "b", status="closed"),
        ]
        page = build_composer(make_stores(jobs)).compose("job", take=10)
        assert [i.id for i in page.items] == ["a"]
        assert page.total == 1

    def test_direct_tab_failure_raises(self, stores: dict) -> None:
        """Test a failing direct tab surfaces StoreUnavailableError."""
        broken = MagicMock()
        broken.find_many.side_effect = RuntimeError("gone")
        stores[ContentType.MODEL] = broken

        with pytest.raises(StoreUnavailableError) as exc_info:
            build_composer(stores).compose("huggingface", take=5)
        assert exc_info.value.content_type == "model"

    def test_unknown_tab_is_empty(self, stores: dict) -> None:
        """Test unknown tabs return an empty page."""
        page = build_composer(stores).compose("podcasts", take=5)
        assert page.items == []
        assert page.total == 0
