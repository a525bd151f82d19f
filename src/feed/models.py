"""Data models for feed composition."""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from src.store.models import ContentItem, ContentType


class FeedTab(str, Enum):
    """Feed tabs.

    RECOMMEND and LATEST run the bucket composer; the others are direct
    per-family listings.
    """

    RECOMMEND = "recommend"
    LATEST = "latest"
    PAPER = "paper"
    VIDEO = "video"
    CODE = "code"
    JOB = "job"
    HUGGINGFACE = "huggingface"

    @property
    def is_composed(self) -> bool:
        """True for tabs served by the bucket composer."""
        return self in (FeedTab.RECOMMEND, FeedTab.LATEST)


# Family listed by each direct tab
TAB_FAMILIES: dict[FeedTab, ContentType] = {
    FeedTab.PAPER: ContentType.PAPER,
    FeedTab.VIDEO: ContentType.VIDEO,
    FeedTab.CODE: ContentType.REPO,
    FeedTab.JOB: ContentType.JOB,
    FeedTab.HUGGINGFACE: ContentType.MODEL,
}


class BucketAllocation(BaseModel):
    """Target sizes of the three feed buckets."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    hot: Annotated[int, Field(ge=0)]
    latest: Annotated[int, Field(ge=0)]
    personalized: Annotated[int, Field(ge=0)]

    @property
    def total(self) -> int:
        """Sum of bucket targets."""
        return self.hot + self.latest + self.personalized


class FeedPage(BaseModel):
    """A page of the feed.

    Attributes:
        items: Items on the page.
        total: Size of the composed window the page was cut from. For direct
            tabs this is the exact family count.
        corpus_total: Exact number of eligible items across the families the
            composer draws from; None when not computed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    items: list[ContentItem] = Field(default_factory=list)
    total: Annotated[int, Field(ge=0)] = 0
    corpus_total: Annotated[int, Field(ge=0)] | None = None
