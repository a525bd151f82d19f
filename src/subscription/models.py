"""Result models for subscription sync and content lookup."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from src.store.models import ContentItem


class SyncResult(BaseModel):
    """Outcome of one successful sync."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    subscription_id: str
    matched_count: Annotated[int, Field(ge=0)] = 0
    new_count: Annotated[int, Field(ge=0)] = 0
    duration_ms: Annotated[float, Field(ge=0.0)] = 0.0


class SubscribedContent(BaseModel):
    """Items matching a user's subscription for one content family.

    ``subscription_id`` is None when the user has no active subscription
    for the family; the page is then empty.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    items: list[ContentItem] = Field(default_factory=list)
    total: Annotated[int, Field(ge=0)] = 0
    subscription_id: str | None = None


class BulkSyncReport(BaseModel):
    """Summary of a scheduler pass over every active subscription."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total: Annotated[int, Field(ge=0)] = 0
    succeeded: Annotated[int, Field(ge=0)] = 0
    failed: Annotated[int, Field(ge=0)] = 0
    failed_ids: list[str] = Field(default_factory=list)
