"""In-memory implementations of the store protocols.

Used by tests and by embedders that already hold content in memory. All
stores guard their state with a lock so concurrent fan-out reads are safe.
"""

import threading
from collections.abc import Iterable
from datetime import datetime

from src.store.errors import SubscriptionNotFoundError
from src.store.models import (
    BehaviorAction,
    ContentItem,
    ContentType,
    FavoriteRecord,
    Subscription,
    SubscriptionHistory,
    SyncStatus,
    UserBehaviorRecord,
)
from src.store.predicates import OrderBy, Predicate, matches, sort_items


class InMemoryContentStore:
    """Content store for one family backed by a list."""

    def __init__(
        self,
        content_type: ContentType,
        items: Iterable[ContentItem] = (),
    ) -> None:
        """Initialize the store.

        Args:
            content_type: Family served by this store.
            items: Initial items; their type must match ``content_type``.
        """
        self._content_type = content_type
        self._lock = threading.Lock()
        self._items: list[ContentItem] = []
        for item in items:
            self.upsert(item)

    @property
    def content_type(self) -> ContentType:
        """Family served by this store."""
        return self._content_type

    def upsert(self, item: ContentItem) -> ContentItem:
        """Insert an item or replace the one with the same id.

        Args:
            item: Item to store.

        Returns:
            The stored item.

        Raises:
            ValueError: If the item belongs to another family.
        """
        if item.type != self._content_type:
            msg = f"{item.type.value} item in {self._content_type.value} store"
            raise ValueError(msg)
        with self._lock:
            for idx, existing in enumerate(self._items):
                if existing.id == item.id:
                    self._items[idx] = item
                    return item
            self._items.append(item)
        return item

    def find_many(
        self,
        where: Predicate | None = None,
        order_by: OrderBy | None = None,
        skip: int = 0,
        take: int | None = None,
    ) -> list[ContentItem]:
        """Return matching items after ordering and slicing."""
        with self._lock:
            snapshot = list(self._items)
        selected = sort_items([i for i in snapshot if matches(where, i)], order_by)
        end = None if take is None else skip + take
        return selected[skip:end]

    def count(self, where: Predicate | None = None) -> int:
        """Return the number of matching items."""
        with self._lock:
            return sum(1 for i in self._items if matches(where, i))

    def find_by_ids(self, ids: list[str]) -> list[ContentItem]:
        """Return the items with the given ids."""
        wanted = set(ids)
        with self._lock:
            return [i for i in self._items if i.id in wanted]


class InMemoryBehaviorLog:
    """Append-only behavior log."""

    def __init__(self, records: Iterable[UserBehaviorRecord] = ()) -> None:
        """Initialize with optional existing records."""
        self._lock = threading.Lock()
        self._records: list[UserBehaviorRecord] = list(records)

    def append(self, record: UserBehaviorRecord) -> None:
        """Record a user action."""
        with self._lock:
            self._records.append(record)

    def find_actions(
        self,
        user_id: str,
        actions: frozenset[BehaviorAction],
        since: datetime,
        limit: int,
    ) -> list[UserBehaviorRecord]:
        """Return a user's actions of the given kinds since a moment."""
        with self._lock:
            found = [
                r
                for r in self._records
                if r.user_id == user_id
                and r.action_type in actions
                and r.created_at >= since
            ]
        found.sort(key=lambda r: r.created_at, reverse=True)
        return found[:limit]


class InMemoryFavoriteStore:
    """Favorites keyed by (user, type, id)."""

    def __init__(self, favorites: Iterable[FavoriteRecord] = ()) -> None:
        """Initialize with optional existing favorites."""
        self._lock = threading.Lock()
        self._favorites: dict[tuple[str, str, str], FavoriteRecord] = {}
        for fav in favorites:
            self.add(fav)

    def add(self, favorite: FavoriteRecord) -> None:
        """Save an item for a user (idempotent)."""
        key = (favorite.user_id, favorite.content_type.value, favorite.content_id)
        with self._lock:
            self._favorites.setdefault(key, favorite)

    def find_favorites(
        self,
        user_id: str,
        content_type: ContentType | None = None,
        limit: int | None = None,
    ) -> list[FavoriteRecord]:
        """Return a user's favorites, newest first."""
        with self._lock:
            found = [
                f
                for f in self._favorites.values()
                if f.user_id == user_id
                and (content_type is None or f.content_type == content_type)
            ]
        found.sort(key=lambda f: f.created_at, reverse=True)
        return found if limit is None else found[:limit]


class InMemorySubscriptionStore:
    """Subscriptions and their sync history."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._lock = threading.Lock()
        self._subscriptions: dict[str, Subscription] = {}
        self._history: list[SubscriptionHistory] = []

    def create(self, subscription: Subscription) -> Subscription:
        """Persist a new subscription."""
        with self._lock:
            if subscription.id in self._subscriptions:
                msg = f"Duplicate subscription id: {subscription.id}"
                raise ValueError(msg)
            self._subscriptions[subscription.id] = subscription
        return subscription

    def get(self, subscription_id: str) -> Subscription | None:
        """Look up a subscription by id."""
        with self._lock:
            return self._subscriptions.get(subscription_id)

    def update(self, subscription: Subscription) -> Subscription:
        """Replace a stored subscription."""
        with self._lock:
            self._subscriptions[subscription.id] = subscription
        return subscription

    def delete(self, subscription_id: str) -> None:
        """Remove a subscription and its history."""
        with self._lock:
            self._subscriptions.pop(subscription_id, None)
            self._history = [
                h for h in self._history if h.subscription_id != subscription_id
            ]

    def _for_user(
        self,
        user_id: str,
        content_type: ContentType | None,
        active_only: bool,
    ) -> list[Subscription]:
        with self._lock:
            found = [
                s
                for s in self._subscriptions.values()
                if s.user_id == user_id
                and (content_type is None or s.content_type == content_type)
                and (not active_only or s.is_active)
            ]
        found.sort(key=lambda s: s.created_at, reverse=True)
        return found

    def list_for_user(
        self,
        user_id: str,
        content_type: ContentType | None = None,
        active_only: bool = False,
        skip: int = 0,
        take: int | None = None,
    ) -> list[Subscription]:
        """Return a user's subscriptions, newest first."""
        found = self._for_user(user_id, content_type, active_only)
        end = None if take is None else skip + take
        return found[skip:end]

    def count_for_user(
        self, user_id: str, content_type: ContentType | None = None
    ) -> int:
        """Count a user's subscriptions."""
        return len(self._for_user(user_id, content_type, active_only=False))

    def list_active(self) -> list[Subscription]:
        """Return every active subscription, oldest first."""
        with self._lock:
            found = [s for s in self._subscriptions.values() if s.is_active]
        found.sort(key=lambda s: s.created_at)
        return found

    def append_history(self, entry: SubscriptionHistory) -> None:
        """Append a sync history row."""
        with self._lock:
            self._history.append(entry)

    def record_sync_success(
        self,
        entry: SubscriptionHistory,
        synced_at: datetime,
    ) -> Subscription:
        """Append a success row and update counters under one lock."""
        if entry.status != SyncStatus.SUCCESS:
            msg = "record_sync_success requires a success history entry"
            raise ValueError(msg)
        with self._lock:
            current = self._subscriptions.get(entry.subscription_id)
            if current is None:
                raise SubscriptionNotFoundError(entry.subscription_id)
            updated = current.model_copy(
                update={
                    "last_sync_at": synced_at,
                    "last_checked": synced_at,
                    "total_matched": entry.matched_count,
                    "new_count": entry.new_count,
                }
            )
            self._subscriptions[updated.id] = updated
            self._history.append(entry)
        return updated

    def list_history(self, subscription_id: str) -> list[SubscriptionHistory]:
        """Return history rows for a subscription, oldest first."""
        with self._lock:
            return [h for h in self._history if h.subscription_id == subscription_id]
