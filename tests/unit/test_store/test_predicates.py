"""Unit tests for predicate evaluation and ordering."""

import pytest

from src.store.models import ContentType
from src.store.predicates import (
    AllOf,
    AnyOf,
    Contains,
    Equals,
    InSet,
    OrderBy,
    Since,
    matches,
    sort_items,
)
from tests.helpers.factories import make_item
from tests.helpers.time import days_ago


class TestPredicates:
    """Tests for predicate nodes."""

    def test_contains_is_case_insensitive(self) -> None:
        """Test substring matching ignores case."""
        item = make_item(ContentType.PAPER, "p", title="Scaling Transformers")
        assert Contains("title", "transformer").matches(item)
        assert not Contains("title", "diffusion").matches(item)

    def test_contains_on_list_field(self) -> None:
        """Test list fields match when any element contains the term."""
        item = make_item(ContentType.PAPER, "p", tags=["cs.LG", "cs.CL"])
        assert Contains("tags", "cl").matches(item)
        assert not Contains("tags", "cv").matches(item)

    def test_contains_on_missing_value(self) -> None:
        """Test None fields never contain anything."""
        item = make_item(ContentType.JOB, "j", company=None)
        assert not Contains("company", "acme").matches(item)

    def test_equals_unwraps_enums(self) -> None:
        """Test enum-valued fields compare by value."""
        item = make_item(ContentType.JOB, "j")
        assert Equals("type", ContentType.JOB).matches(item)
        assert Equals("status", "open").matches(item)

    def test_inset_empty_matches_nothing(self) -> None:
        """Test an empty set excludes every item."""
        item = make_item(ContentType.REPO, "r")
        assert not InSet("id", frozenset()).matches(item)
        assert InSet("id", frozenset({"r", "x"})).matches(item)

    def test_since_excludes_missing_dates(self) -> None:
        """Test items without a timestamp never pass Since."""
        undated = make_item(ContentType.NEWS, "n", published_at=None)
        recent = make_item(ContentType.NEWS, "m", age_days=1)
        assert not Since("published_at", days_ago(7)).matches(undated)
        assert Since("published_at", days_ago(7)).matches(recent)

    def test_empty_groups(self) -> None:
        """Test empty AnyOf matches nothing and empty AllOf everything."""
        item = make_item(ContentType.VIDEO, "v")
        assert not AnyOf().matches(item)
        assert AllOf().matches(item)

    def test_nested_groups(self) -> None:
        """Test AND of ORs."""
        item = make_item(ContentType.REPO, "r", title="llama.cpp", tags=["cpp"])
        where = AllOf(
            (
                AnyOf((Contains("title", "llama"), Contains("title", "mistral"))),
                AnyOf((Contains("tags", "rust"),)),
            )
        )
        assert not where.matches(item)

    def test_none_matches_everything(self) -> None:
        """Test a missing predicate is no filter."""
        assert matches(None, make_item(ContentType.MODEL, "m"))

    def test_unknown_field_rejected(self) -> None:
        """Test predicates validate field names."""
        with pytest.raises(ValueError, match="Unknown content field"):
            Contains("body", "x")


class TestSortItems:
    """Tests for sort_items."""

    def test_descending_with_none_last(self) -> None:
        """Test missing sort values go last."""
        items = [
            make_item(ContentType.PAPER, "old", age_days=10),
            make_item(ContentType.PAPER, "none", published_at=None),
            make_item(ContentType.PAPER, "new", age_days=1),
        ]
        ordered = sort_items(items, OrderBy("published_at"))
        assert [i.id for i in ordered] == ["new", "old", "none"]

    def test_ties_keep_input_order(self) -> None:
        """Test equal keys keep insertion order."""
        items = [make_item(ContentType.REPO, x, stars_count=1) for x in "abc"]
        ordered = sort_items(items, OrderBy("stars_count"))
        assert [i.id for i in ordered] == ["a", "b", "c"]

    def test_no_order_returns_copy(self) -> None:
        """Test None keeps the input order."""
        items = [make_item(ContentType.REPO, x) for x in "ba"]
        assert [i.id for i in sort_items(items, None)] == ["b", "a"]
