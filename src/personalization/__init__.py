"""Behavior-driven personalization."""

from src.personalization.models import (
    PersonalizationProfile,
    PersonalizedSelection,
    SelectionStatus,
)
from src.personalization.profile import ProfileBuilder, top_by_frequency
from src.personalization.selector import (
    PersonalizationSelector,
    dedupe,
    personalization_score,
)


__all__ = [
    "PersonalizationProfile",
    "PersonalizationSelector",
    "PersonalizedSelection",
    "ProfileBuilder",
    "SelectionStatus",
    "dedupe",
    "personalization_score",
    "top_by_frequency",
]
