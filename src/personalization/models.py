"""Data models for personalization."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.store.models import ContentItem, ContentType


class PersonalizationProfile(BaseModel):
    """Preferences derived from a user's recent behavior and favorites.

    Rebuilt on every request; never cached.

    Attributes:
        favorite_types: Families the user acted on most (view, favorite,
            comment) in the window, most frequent first.
        saved_types: Distinct families among the user's favorites.
        favorite_tags: Most frequent tags on favorited papers, repos and jobs.
        favorite_authors: Most frequent authors on favorited papers.
        most_viewed_type: Family with the most distinct recent views.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    favorite_types: list[ContentType] = Field(default_factory=list)
    saved_types: list[ContentType] = Field(default_factory=list)
    favorite_tags: list[str] = Field(default_factory=list)
    favorite_authors: list[str] = Field(default_factory=list)
    most_viewed_type: ContentType | None = None

    @property
    def is_empty(self) -> bool:
        """True when the user has no usable history."""
        return not (self.favorite_types or self.saved_types or self.most_viewed_type)


class SelectionStatus(str, Enum):
    """Outcome of a personalized selection."""

    OK = "ok"
    DEGRADED = "degraded"


class PersonalizedSelection(BaseModel):
    """Items for the personalized bucket.

    A DEGRADED selection carries the latest-items fallback and the reason
    personalization failed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    items: list[ContentItem] = Field(default_factory=list)
    status: SelectionStatus = SelectionStatus.OK
    reason: str | None = None

    @property
    def degraded(self) -> bool:
        """True if the fallback was used."""
        return self.status == SelectionStatus.DEGRADED
