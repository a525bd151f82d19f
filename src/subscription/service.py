"""Subscription management.

CRUD over subscriptions with owner checks, content lookup through the
compiled filter, and the scheduler's bulk sync. Creating a subscription
schedules a background sync whose failure is only logged.
"""

import uuid
from collections.abc import Callable, Mapping
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any

import structlog

from src.feed.selectors import RECENCY, store_for
from src.store.errors import SubscriptionNotFoundError
from src.store.models import ContentType, Subscription, SyncType, ensure_utc
from src.store.protocols import ContentStore, SubscriptionStore
from src.subscription.compiler import compile_subscription, parse_filter_list
from src.subscription.errors import (
    SubscriptionAccessDeniedError,
    SubscriptionValidationError,
)
from src.subscription.metrics import SyncMetrics
from src.subscription.models import BulkSyncReport, SubscribedContent, SyncResult
from src.subscription.sync import SyncEngine


logger = structlog.get_logger()

FILTER_FIELDS: tuple[str, ...] = ("keywords", "tags", "authors", "uploaders", "owners")


def _parse_content_type(value: ContentType | str | None) -> ContentType:
    if not value:
        msg = "content_type is required"
        raise SubscriptionValidationError(msg)
    try:
        return ContentType(value)
    except ValueError as e:
        msg = f"unknown content_type '{value}'"
        raise SubscriptionValidationError(msg) from e


class SubscriptionService:
    """User-facing subscription operations."""

    def __init__(  # noqa: PLR0913
        self,
        stores: Mapping[ContentType, ContentStore],
        subscriptions: SubscriptionStore,
        sync_engine: SyncEngine,
        executor: Executor | None = None,
        auto_sync: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            stores: Content adapters by family.
            subscriptions: Subscription and history store.
            sync_engine: Engine used for auto and bulk syncs.
            executor: Runs auto-syncs; a single-thread pool is created when
                omitted and shut down by ``close``.
            auto_sync: Schedule a sync after each create.
            clock: Source of the current time; defaults to UTC now.
        """
        self._stores = stores
        self._subscriptions = subscriptions
        self._sync_engine = sync_engine
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="auto-sync"
        )
        self._auto_sync = auto_sync
        read_clock = clock or (lambda: datetime.now(UTC))
        self._clock = lambda: ensure_utc(read_clock())
        self._metrics = SyncMetrics.get_instance()
        self._log = logger.bind(component="subscription", subcomponent="service")

    def close(self, wait: bool = True) -> None:
        """Shut down the auto-sync executor if this service created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> "SubscriptionService":
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def create(  # noqa: PLR0913
        self,
        user_id: str,
        content_type: ContentType | str,
        keywords: Any,
        tags: Any = None,
        authors: Any = None,
        uploaders: Any = None,
        owners: Any = None,
        notify_enabled: bool = True,
    ) -> Subscription:
        """Create a subscription and schedule its first sync.

        Filter lists may be lists or JSON-encoded lists.

        Args:
            user_id: Owner.
            content_type: Target family.
            keywords: At least one keyword.
            tags: Tag filter.
            authors: Paper author filter.
            uploaders: Video uploader filter.
            owners: Repository owner filter.
            notify_enabled: Notification preference.

        Returns:
            The stored subscription.

        Raises:
            SubscriptionValidationError: If the user, content type or
                keywords are missing.
            InvalidFilterError: If a filter list cannot be decoded.
        """
        if not user_id:
            msg = "user_id is required"
            raise SubscriptionValidationError(msg)
        family = _parse_content_type(content_type)
        keyword_list = parse_filter_list("keywords", keywords)
        if not keyword_list:
            msg = "at least one keyword is required"
            raise SubscriptionValidationError(msg)

        now = self._clock()
        subscription = Subscription(
            id=uuid.uuid4().hex,
            user_id=user_id,
            content_type=family,
            keywords=keyword_list,
            tags=parse_filter_list("tags", tags),
            authors=parse_filter_list("authors", authors),
            uploaders=parse_filter_list("uploaders", uploaders),
            owners=parse_filter_list("owners", owners),
            notify_enabled=notify_enabled,
            created_at=now,
            updated_at=now,
        )
        created = self._subscriptions.create(subscription)
        self._log.info(
            "subscription_created",
            subscription_id=created.id,
            user_id=user_id,
            content_type=family.value,
            keywords=len(keyword_list),
        )

        if self._auto_sync:
            self.schedule_sync(created.id)
        return created

    def schedule_sync(self, subscription_id: str) -> Future[None]:
        """Run an auto sync in the background.

        Args:
            subscription_id: Subscription to sync.

        Returns:
            Future completing when the sync ends; it never holds an error.
        """
        return self._executor.submit(self._run_auto_sync, subscription_id)

    def _run_auto_sync(self, subscription_id: str) -> None:
        try:
            self._sync_engine.sync(subscription_id, SyncType.AUTO)
        except Exception as e:  # noqa: BLE001
            self._metrics.record_auto_sync_failure()
            self._log.warning(
                "auto_sync_failed",
                subscription_id=subscription_id,
                error=str(e),
            )

    def _owned(self, subscription_id: str, user_id: str) -> Subscription:
        existing = self._subscriptions.get(subscription_id)
        if existing is None:
            raise SubscriptionNotFoundError(subscription_id)
        if existing.user_id != user_id:
            self._log.warning(
                "subscription_access_denied",
                subscription_id=subscription_id,
                user_id=user_id,
            )
            raise SubscriptionAccessDeniedError(subscription_id, user_id)
        return existing

    def update(self, subscription_id: str, user_id: str, **changes: Any) -> Subscription:
        """Update a subscription owned by ``user_id``.

        Args:
            subscription_id: Subscription to change.
            user_id: Requesting user; must be the owner.
            **changes: Any of the filter lists, ``is_active`` or
                ``notify_enabled``.

        Returns:
            The updated subscription.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
            SubscriptionAccessDeniedError: If ``user_id`` is not the owner.
            SubscriptionValidationError: If a filter value is not a list or
                an unknown field is given.
        """
        existing = self._owned(subscription_id, user_id)

        update: dict[str, Any] = {}
        for name, value in changes.items():
            if value is None:
                continue
            if name in FILTER_FIELDS:
                if not isinstance(value, list):
                    msg = f"{name} must be a list"
                    raise SubscriptionValidationError(msg)
                update[name] = [str(v).strip() for v in value if str(v).strip()]
            elif name in ("is_active", "notify_enabled"):
                update[name] = bool(value)
            else:
                msg = f"field '{name}' cannot be updated"
                raise SubscriptionValidationError(msg)

        if "keywords" in update and not update["keywords"]:
            msg = "at least one keyword is required"
            raise SubscriptionValidationError(msg)

        update["updated_at"] = self._clock()
        updated = self._subscriptions.update(existing.model_copy(update=update))
        self._log.info(
            "subscription_updated",
            subscription_id=subscription_id,
            fields=sorted(k for k in update if k != "updated_at"),
        )
        return updated

    def delete(self, subscription_id: str, user_id: str) -> None:
        """Delete a subscription owned by ``user_id``.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
            SubscriptionAccessDeniedError: If ``user_id`` is not the owner.
        """
        self._owned(subscription_id, user_id)
        self._subscriptions.delete(subscription_id)
        self._log.info("subscription_deleted", subscription_id=subscription_id)

    def get(self, subscription_id: str) -> Subscription:
        """Get a subscription by id.

        Raises:
            SubscriptionNotFoundError: If it does not exist.
        """
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)
        return subscription

    def list_for_user(
        self,
        user_id: str,
        content_type: ContentType | str | None = None,
        skip: int = 0,
        take: int = 20,
    ) -> tuple[list[Subscription], int]:
        """List a user's subscriptions, newest first, with the total count."""
        family = _parse_content_type(content_type) if content_type else None
        items = self._subscriptions.list_for_user(
            user_id, content_type=family, skip=max(0, skip), take=max(1, take)
        )
        return items, self._subscriptions.count_for_user(user_id, family)

    def get_subscribed_content(
        self,
        user_id: str,
        content_type: ContentType | str,
        skip: int = 0,
        take: int = 20,
    ) -> SubscribedContent:
        """Items matching the user's active subscription for a family.

        The most recently created active subscription is used. Without one
        the result is empty.

        Raises:
            SubscriptionValidationError: If the content type is unknown.
            InvalidFilterError: If the stored filter cannot be compiled.
        """
        family = _parse_content_type(content_type)
        active = self._subscriptions.list_for_user(
            user_id, content_type=family, active_only=True, take=1
        )
        if not active:
            return SubscribedContent()
        return self._content_for(active[0], skip, take)

    def get_subscription_content(
        self,
        subscription_id: str,
        user_id: str | None = None,
        skip: int = 0,
        take: int = 20,
    ) -> SubscribedContent:
        """Items matching one subscription.

        Args:
            subscription_id: Subscription to evaluate.
            user_id: When given, must be the owner.
            skip: Page offset.
            take: Page size.

        Raises:
            SubscriptionNotFoundError: If it does not exist.
            SubscriptionAccessDeniedError: If ``user_id`` is not the owner.
        """
        if user_id is None:
            subscription = self.get(subscription_id)
        else:
            subscription = self._owned(subscription_id, user_id)
        return self._content_for(subscription, skip, take)

    def _content_for(
        self, subscription: Subscription, skip: int, take: int
    ) -> SubscribedContent:
        where = compile_subscription(subscription)
        store = store_for(self._stores, subscription.content_type)
        items = store.find_many(
            where=where, order_by=RECENCY, skip=max(0, skip), take=max(1, take)
        )
        return SubscribedContent(
            items=items,
            total=store.count(where),
            subscription_id=subscription.id,
        )

    def sync(
        self, subscription_id: str, sync_type: SyncType | str = SyncType.MANUAL
    ) -> SyncResult:
        """Sync one subscription now. See ``SyncEngine.sync``."""
        return self._sync_engine.sync(subscription_id, sync_type)

    def sync_all_active(self) -> BulkSyncReport:
        """Sync every active subscription in turn.

        Failures are counted and logged; the pass always completes.

        Returns:
            Counts of succeeded and failed syncs.
        """
        active = self._subscriptions.list_active()
        self._log.info("bulk_sync_started", subscriptions=len(active))

        failed_ids: list[str] = []
        for subscription in active:
            try:
                self._sync_engine.sync(subscription.id, SyncType.SCHEDULED)
            except Exception:  # noqa: BLE001
                failed_ids.append(subscription.id)

        report = BulkSyncReport(
            total=len(active),
            succeeded=len(active) - len(failed_ids),
            failed=len(failed_ids),
            failed_ids=failed_ids,
        )
        self._log.info(
            "bulk_sync_completed",
            total=report.total,
            succeeded=report.succeeded,
            failed=report.failed,
        )
        return report
