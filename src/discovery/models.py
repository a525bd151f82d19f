"""Data models for the discovery page."""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from src.store.models import ContentItem, ContentType, PinnedItem


class DiscoveryType(str, Enum):
    """Discovery content selector."""

    ALL = "all"
    GITHUB = "github"
    HUGGINGFACE = "huggingface"
    VIDEO = "video"
    PAPER = "paper"
    COMMUNITY = "community"
    NEWS = "news"

    @property
    def has_pinned_overlay(self) -> bool:
        """True for selectors that return pinned items."""
        return self in (DiscoveryType.ALL, DiscoveryType.NEWS)


class SortType(str, Enum):
    """Discovery ordering."""

    HOT = "hot"
    LATEST = "latest"


# Family listed by each single-family selector
DISCOVERY_FAMILIES: dict[DiscoveryType, ContentType] = {
    DiscoveryType.GITHUB: ContentType.REPO,
    DiscoveryType.HUGGINGFACE: ContentType.MODEL,
    DiscoveryType.VIDEO: ContentType.VIDEO,
    DiscoveryType.PAPER: ContentType.PAPER,
    DiscoveryType.COMMUNITY: ContentType.POST,
    DiscoveryType.NEWS: ContentType.NEWS,
}

# Families mixed on the "all" page
MIXED_FAMILIES: tuple[ContentType, ...] = (
    ContentType.PAPER,
    ContentType.VIDEO,
    ContentType.REPO,
    ContentType.MODEL,
    ContentType.JOB,
    ContentType.NEWS,
)


class DiscoveryPage(BaseModel):
    """A discovery page.

    ``pinned_items`` is a separate overlay fetched independently; it never
    counts against the page size.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    items: list[ContentItem] = Field(default_factory=list)
    total: Annotated[int, Field(ge=0)] = 0
    pinned_items: list[PinnedItem] = Field(default_factory=list)
