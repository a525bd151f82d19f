"""Data models for content records, behavior logs, and subscriptions."""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentType(str, Enum):
    """Content family served by the platform.

    - PAPER: Research papers (arXiv and similar)
    - VIDEO: Videos from video platforms
    - REPO: Source code repositories
    - MODEL: Hosted machine-learning models
    - JOB: Job postings
    - POST: Community posts
    - NEWS: News articles
    """

    PAPER = "paper"
    VIDEO = "video"
    REPO = "repo"
    MODEL = "model"
    JOB = "job"
    POST = "post"
    NEWS = "news"


class BehaviorAction(str, Enum):
    """User action recorded in the behavior log."""

    VIEW = "view"
    FAVORITE = "favorite"
    UNFAVORITE = "unfavorite"
    COMMENT = "comment"
    SHARE = "share"


class SyncStatus(str, Enum):
    """Outcome of a subscription sync attempt."""

    SUCCESS = "success"
    FAILED = "failed"


class SyncType(str, Enum):
    """What triggered a subscription sync."""

    AUTO = "auto"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


def parse_packed_list(value: Any) -> list[str]:
    """Parse a list field that may be stored packed into a string.

    Accepts a real list, a JSON-encoded list, or a comma-separated string.
    Empty and None values become an empty list.

    Args:
        value: Raw field value.

    Returns:
        List of non-empty, stripped strings.
    """
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                decoded = None
            if isinstance(decoded, list):
                return [str(v).strip() for v in decoded if str(v).strip()]
        return [part.strip() for part in text.split(",") if part.strip()]
    if isinstance(value, list | tuple | set):
        return [str(v).strip() for v in value if str(v).strip()]
    msg = f"Cannot parse list field from {type(value).__name__}"
    raise ValueError(msg)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def coerce_timestamp(value: Any) -> datetime | None:
    """Coerce a stored timestamp to an aware datetime.

    Unparsable values become None rather than failing the projection;
    naive datetimes are taken to be UTC.

    Args:
        value: datetime, ISO string, or None.

    Returns:
        Timezone-aware datetime or None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    return ensure_utc(value)


class ContentItem(BaseModel):
    """Projection of a stored content record used for ranking.

    One flat shape covers every family; counters that a family does not
    have stay at zero. ``published_at`` carries the family's natural
    recency field.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1, description="Item identifier")]
    type: ContentType = Field(description="Content family")
    title: str = Field(default="", description="Title, repo name, or model name")
    summary: str = Field(default="", description="Abstract or description")
    published_at: datetime | None = Field(
        default=None, description="Natural recency timestamp"
    )
    tags: list[str] = Field(default_factory=list)
    authors: list[str] = Field(
        default_factory=list, description="Authors, uploader, or owner"
    )
    company: str | None = None
    status: str | None = None
    is_pinned: bool = False
    pinned_at: datetime | None = None

    view_count: Annotated[int, Field(ge=0)] = 0
    favorite_count: Annotated[int, Field(ge=0)] = 0
    share_count: Annotated[int, Field(ge=0)] = 0
    comment_count: Annotated[int, Field(ge=0)] = 0
    like_count: Annotated[int, Field(ge=0)] = 0
    citation_count: Annotated[int, Field(ge=0)] = 0
    play_count: Annotated[int, Field(ge=0)] = 0
    stars_count: Annotated[int, Field(ge=0)] = 0
    forks_count: Annotated[int, Field(ge=0)] = 0
    downloads: Annotated[int, Field(ge=0)] = 0
    likes: Annotated[int, Field(ge=0)] = 0
    heat: Annotated[float, Field(ge=0.0)] = 0.0

    @property
    def key(self) -> tuple[str, str]:
        """Composite identity used for deduplication."""
        return (self.type.value, self.id)

    @field_validator("tags", "authors", mode="before")
    @classmethod
    def unpack_lists(cls, v: Any) -> list[str]:
        """Unpack JSON or comma-separated list fields."""
        return parse_packed_list(v)

    @field_validator("published_at", "pinned_at", mode="before")
    @classmethod
    def coerce_dates(cls, v: Any) -> datetime | None:
        """Coerce timestamps, mapping unparsable values to None."""
        return coerce_timestamp(v)

    @field_validator("heat", mode="before")
    @classmethod
    def coerce_heat(cls, v: Any) -> float:
        """News heat is sometimes stored as a string score."""
        if v is None or v == "":
            return 0.0
        try:
            return max(float(v), 0.0)
        except (TypeError, ValueError):
            return 0.0


# Engagement counters that hotness weight tables may reference.
COUNTER_FIELDS = frozenset(
    {
        "view_count",
        "favorite_count",
        "share_count",
        "comment_count",
        "like_count",
        "citation_count",
        "play_count",
        "stars_count",
        "forks_count",
        "downloads",
        "likes",
        "heat",
    }
)


class UserBehaviorRecord(BaseModel):
    """Immutable behavior-log entry created when a user acts on content."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: Annotated[str, Field(min_length=1)]
    action_type: BehaviorAction
    content_type: ContentType
    content_id: Annotated[str, Field(min_length=1)]
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)


class FavoriteRecord(BaseModel):
    """A content item saved by a user."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: Annotated[str, Field(min_length=1)]
    content_type: ContentType
    content_id: Annotated[str, Field(min_length=1)]
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PinnedItem(BaseModel):
    """A pinned content item rendered as a fixed header by callers."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    content_type: ContentType
    content_id: Annotated[str, Field(min_length=1)]
    pinned_at: datetime | None = None
    item: ContentItem | None = None


class Subscription(BaseModel):
    """A user-defined filter re-evaluated against one content family.

    Filter lists are owned by the user; the sync engine only touches the
    aggregate counters and timestamps.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1)]
    user_id: Annotated[str, Field(min_length=1)]
    content_type: ContentType
    keywords: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    authors: list[str] = Field(default_factory=list)
    uploaders: list[str] = Field(default_factory=list)
    owners: list[str] = Field(default_factory=list)
    is_active: bool = True
    notify_enabled: bool = True
    last_sync_at: datetime | None = None
    last_checked: datetime | None = None
    total_matched: Annotated[int, Field(ge=0)] = 0
    new_count: Annotated[int, Field(ge=0)] = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SubscriptionHistory(BaseModel):
    """Append-only record of one sync attempt."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1)]
    subscription_id: Annotated[str, Field(min_length=1)]
    sync_type: SyncType = SyncType.AUTO
    matched_count: Annotated[int, Field(ge=0)] = 0
    new_count: Annotated[int, Field(ge=0)] = 0
    status: SyncStatus
    duration_ms: Annotated[float, Field(ge=0.0)] = 0.0
    error_message: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
