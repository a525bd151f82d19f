"""Time decay and hotness scoring."""

from src.ranking.decay import time_decay
from src.ranking.hotness import (
    HotnessScorer,
    engagement_score,
    generic_engagement_score,
)
from src.ranking.models import ScoredItem


__all__ = [
    "HotnessScorer",
    "ScoredItem",
    "engagement_score",
    "generic_engagement_score",
    "time_decay",
]
