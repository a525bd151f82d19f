"""Storage layer for content, user behavior, and subscriptions.

This package provides:
- Content projections and subscription records (pydantic models)
- A small predicate language understood by every adapter
- Collaborator protocols consumed by the ranking engine
- In-memory and SQLite implementations of those protocols
"""

from src.store.errors import (
    ContentNotFoundError,
    MigrationError,
    StoreConnectionError,
    StoreError,
    StoreUnavailableError,
    SubscriptionNotFoundError,
)
from src.store.memory import (
    InMemoryBehaviorLog,
    InMemoryContentStore,
    InMemoryFavoriteStore,
    InMemorySubscriptionStore,
)
from src.store.metrics import StoreMetrics
from src.store.models import (
    BehaviorAction,
    ContentItem,
    ContentType,
    FavoriteRecord,
    PinnedItem,
    Subscription,
    SubscriptionHistory,
    SyncStatus,
    SyncType,
    UserBehaviorRecord,
)
from src.store.predicates import (
    AllOf,
    AnyOf,
    Contains,
    Equals,
    InSet,
    OrderBy,
    Since,
)
from src.store.protocols import (
    BehaviorLog,
    ContentStore,
    FavoriteStore,
    PinService,
    SubscriptionStore,
)
from src.store.sqlite import SqliteContentStore, SqliteStore, SqliteSubscriptionStore


__all__ = [
    # Errors
    "ContentNotFoundError",
    "MigrationError",
    "StoreConnectionError",
    "StoreError",
    "StoreUnavailableError",
    "SubscriptionNotFoundError",
    # In-memory
    "InMemoryBehaviorLog",
    "InMemoryContentStore",
    "InMemoryFavoriteStore",
    "InMemorySubscriptionStore",
    # Metrics
    "StoreMetrics",
    # Models
    "BehaviorAction",
    "ContentItem",
    "ContentType",
    "FavoriteRecord",
    "PinnedItem",
    "Subscription",
    "SubscriptionHistory",
    "SyncStatus",
    "SyncType",
    "UserBehaviorRecord",
    # Predicates
    "AllOf",
    "AnyOf",
    "Contains",
    "Equals",
    "InSet",
    "OrderBy",
    "Since",
    # Protocols
    "BehaviorLog",
    "ContentStore",
    "FavoriteStore",
    "PinService",
    "SubscriptionStore",
    # SQLite
    "SqliteContentStore",
    "SqliteStore",
    "SqliteSubscriptionStore",
]
