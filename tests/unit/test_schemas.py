"""Unit tests for the engine configuration schema."""

import pytest
from pydantic import ValidationError

from src.config.schemas.engine import (
    EngineConfig,
    FeedConfig,
    HotnessConfig,
    TypeWeights,
)


class TestHotnessConfig:
    """Tests for HotnessConfig defaults."""

    @pytest.mark.unit
    def test_news_half_life_is_short(self) -> None:
        """Test news decays faster than papers."""
        config = HotnessConfig()
        assert config.news.half_life_days == 3
        assert config.paper.half_life_days == 30

    @pytest.mark.unit
    def test_for_type_lookup(self) -> None:
        """Test tables are found by family value."""
        config = HotnessConfig()
        assert config.for_type("repo").weights["stars_count"] == 0.5

    @pytest.mark.unit
    def test_for_type_unknown_family(self) -> None:
        """Test unknown families raise KeyError."""
        with pytest.raises(KeyError):
            HotnessConfig().for_type("generic")

    @pytest.mark.unit
    def test_half_life_must_be_positive(self) -> None:
        """Test zero half-life is rejected."""
        with pytest.raises(ValidationError):
            TypeWeights(weights={}, half_life_days=0)

    @pytest.mark.unit
    def test_unknown_counter_rejected(self) -> None:
        """Test a misspelled counter name fails validation."""
        with pytest.raises(ValidationError, match="stars_cnt"):
            TypeWeights(weights={"stars_cnt": 0.5, "view_count": 0.2})


class TestFeedConfig:
    """Tests for FeedConfig validation."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        """Test production bucket ratios."""
        config = FeedConfig()
        assert (config.hot_ratio, config.latest_ratio, config.personalized_ratio) == (
            0.4,
            0.3,
            0.3,
        )

    @pytest.mark.unit
    def test_ratios_over_one_rejected(self) -> None:
        """Test bucket ratios cannot exceed the page."""
        with pytest.raises(ValidationError, match="must be <= 1.0"):
            FeedConfig(hot_ratio=0.6, latest_ratio=0.3, personalized_ratio=0.3)


class TestEngineConfig:
    """Tests for EngineConfig."""

    @pytest.mark.unit
    def test_unknown_keys_rejected(self) -> None:
        """Test strict models reject typos."""
        with pytest.raises(ValidationError):
            EngineConfig.model_validate({"fead": {}})

    @pytest.mark.unit
    def test_partial_override(self) -> None:
        """Test nested sections keep defaults for omitted keys."""
        config = EngineConfig.model_validate({"discovery": {"max_take": 50}})
        assert config.discovery.max_take == 50
        assert config.discovery.news_overfetch == 5
        assert config.subscription.sync_fetch_limit == 100

    @pytest.mark.unit
    def test_frozen(self) -> None:
        """Test configs are immutable."""
        config = EngineConfig()
        with pytest.raises(ValidationError):
            config.feed = FeedConfig()  # type: ignore[misc]
