"""Collaborator protocols consumed by the ranking engine.

These describe the capabilities the engine needs from storage. They are
injected, never constructed by the engine, so any backend that satisfies
them can serve the composers and the sync engine.
"""

from datetime import datetime
from typing import Protocol

from src.store.models import (
    BehaviorAction,
    ContentItem,
    ContentType,
    FavoriteRecord,
    PinnedItem,
    Subscription,
    SubscriptionHistory,
    UserBehaviorRecord,
)
from src.store.predicates import OrderBy, Predicate


class ContentStore(Protocol):
    """Read access to a single content family."""

    @property
    def content_type(self) -> ContentType:
        """Family served by this adapter."""
        ...

    def find_many(
        self,
        where: Predicate | None = None,
        order_by: OrderBy | None = None,
        skip: int = 0,
        take: int | None = None,
    ) -> list[ContentItem]:
        """Return matching items after ordering and slicing."""
        ...

    def count(self, where: Predicate | None = None) -> int:
        """Return the number of matching items."""
        ...

    def find_by_ids(self, ids: list[str]) -> list[ContentItem]:
        """Return the items with the given ids (missing ids are skipped)."""
        ...


class BehaviorLog(Protocol):
    """Reader over the user behavior log."""

    def find_actions(
        self,
        user_id: str,
        actions: frozenset[BehaviorAction],
        since: datetime,
        limit: int,
    ) -> list[UserBehaviorRecord]:
        """Return a user's actions of the given kinds since a moment."""
        ...


class FavoriteStore(Protocol):
    """Reader over saved (favorited) items."""

    def find_favorites(
        self,
        user_id: str,
        content_type: ContentType | None = None,
        limit: int | None = None,
    ) -> list[FavoriteRecord]:
        """Return a user's favorites, newest first."""
        ...


class PinService(Protocol):
    """Source of pinned items for the discovery overlay."""

    def get_pinned_items(
        self, content_type: ContentType | None = None
    ) -> list[PinnedItem]:
        """Return pinned items, most recently pinned first."""
        ...


class SubscriptionStore(Protocol):
    """CRUD over subscriptions plus the append-only sync history."""

    def create(self, subscription: Subscription) -> Subscription:
        """Persist a new subscription."""
        ...

    def get(self, subscription_id: str) -> Subscription | None:
        """Look up a subscription by id."""
        ...

    def update(self, subscription: Subscription) -> Subscription:
        """Replace a stored subscription."""
        ...

    def delete(self, subscription_id: str) -> None:
        """Remove a subscription."""
        ...

    def list_for_user(
        self,
        user_id: str,
        content_type: ContentType | None = None,
        active_only: bool = False,
        skip: int = 0,
        take: int | None = None,
    ) -> list[Subscription]:
        """Return a user's subscriptions, newest first."""
        ...

    def count_for_user(
        self, user_id: str, content_type: ContentType | None = None
    ) -> int:
        """Count a user's subscriptions."""
        ...

    def list_active(self) -> list[Subscription]:
        """Return every active subscription, oldest first."""
        ...

    def append_history(self, entry: SubscriptionHistory) -> None:
        """Append a sync history row on its own."""
        ...

    def record_sync_success(
        self,
        entry: SubscriptionHistory,
        synced_at: datetime,
    ) -> Subscription:
        """Append a success row and update counters in one transaction."""
        ...

    def list_history(self, subscription_id: str) -> list[SubscriptionHistory]:
        """Return history rows for a subscription, oldest first."""
        ...
