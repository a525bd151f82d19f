"""Subscription sync engine.

A sync re-evaluates a subscription's filter against its content family,
records a history row and refreshes the subscription's counters. On
success the row and the counters are written in one store transaction;
on failure only a ``failed`` row is appended and the error propagates.
"""

import time
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta

import structlog

from src.config.schemas.engine import SubscriptionConfig
from src.feed.selectors import RECENCY, store_for
from src.store.errors import SubscriptionNotFoundError
from src.store.models import (
    ContentItem,
    ContentType,
    SubscriptionHistory,
    SyncStatus,
    SyncType,
    ensure_utc,
)
from src.store.protocols import ContentStore, SubscriptionStore
from src.subscription.compiler import compile_subscription
from src.subscription.metrics import SyncMetrics
from src.subscription.models import SyncResult
from src.subscription.state_machine import SyncState, SyncStateMachine


logger = structlog.get_logger()


def new_history_id() -> str:
    """Generate a history row identifier."""
    return uuid.uuid4().hex


def count_new_items(
    items: list[ContentItem], now: datetime, window: timedelta, cap: int
) -> int:
    """Count items published within ``window`` of ``now``, capped at ``cap``."""
    cutoff = now - window
    fresh = sum(
        1 for item in items if item.published_at is not None and item.published_at >= cutoff
    )
    return min(fresh, cap)


class SyncEngine:
    """Runs subscription syncs against the content stores."""

    def __init__(
        self,
        stores: Mapping[ContentType, ContentStore],
        subscriptions: SubscriptionStore,
        config: SubscriptionConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            stores: Content adapters by family.
            subscriptions: Subscription and history store.
            config: Fetch limit and new-item window.
            clock: Source of the current time; defaults to UTC now. Naive
                readings are taken as UTC.
        """
        self._stores = stores
        self._subscriptions = subscriptions
        self._config = config or SubscriptionConfig()
        read_clock = clock or (lambda: datetime.now(UTC))
        self._clock = lambda: ensure_utc(read_clock())
        self._metrics = SyncMetrics.get_instance()
        self._log = logger.bind(component="subscription", subcomponent="sync")

    def sync(
        self,
        subscription_id: str,
        sync_type: SyncType | str = SyncType.MANUAL,
    ) -> SyncResult:
        """Sync one subscription.

        Args:
            subscription_id: Subscription to sync.
            sync_type: "auto" or "manual"; recorded on the history row.

        Returns:
            Matched and new item counts.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
                No history row is written.
            Exception: Any compile or store failure, after a failed
                history row has been appended.
        """
        sync_type = SyncType(sync_type)
        log = self._log.bind(subscription_id=subscription_id, sync_type=sync_type.value)

        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            log.warning("subscription_not_found")
            raise SubscriptionNotFoundError(subscription_id)

        machine = SyncStateMachine(subscription_id)
        machine.transition_to(SyncState.RUNNING)
        start = time.perf_counter()

        try:
            where = compile_subscription(subscription)
            store = store_for(self._stores, subscription.content_type)
            items = store.find_many(
                where=where,
                order_by=RECENCY,
                take=self._config.sync_fetch_limit,
            )
            now = self._clock()
            matched = len(items)
            new = count_new_items(
                items,
                now,
                timedelta(hours=self._config.new_window_hours),
                self._config.new_count_cap,
            )
            duration_ms = (time.perf_counter() - start) * 1000
            entry = SubscriptionHistory(
                id=new_history_id(),
                subscription_id=subscription_id,
                sync_type=sync_type,
                matched_count=matched,
                new_count=new,
                status=SyncStatus.SUCCESS,
                duration_ms=duration_ms,
                created_at=now,
            )
            self._subscriptions.record_sync_success(entry, synced_at=now)
        except Exception as e:
            machine.transition_to(SyncState.FAILED)
            duration_ms = (time.perf_counter() - start) * 1000
            self._record_failure(subscription_id, sync_type, duration_ms, e)
            self._metrics.record_sync(sync_type.value, SyncStatus.FAILED.value, duration_ms)
            log.error(
                "subscription_sync_failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2),
            )
            raise

        machine.transition_to(SyncState.SUCCESS)
        self._metrics.record_sync(
            sync_type.value, SyncStatus.SUCCESS.value, duration_ms, matched, new
        )
        log.info(
            "subscription_synced",
            content_type=subscription.content_type.value,
            matched_count=matched,
            new_count=new,
            duration_ms=round(duration_ms, 2),
        )
        return SyncResult(
            subscription_id=subscription_id,
            matched_count=matched,
            new_count=new,
            duration_ms=duration_ms,
        )

    def _record_failure(
        self,
        subscription_id: str,
        sync_type: SyncType,
        duration_ms: float,
        error: Exception,
    ) -> None:
        """Append a failed history row; a failing write is logged, not raised."""
        entry = SubscriptionHistory(
            id=new_history_id(),
            subscription_id=subscription_id,
            sync_type=sync_type,
            status=SyncStatus.FAILED,
            duration_ms=duration_ms,
            error_message=str(error),
            created_at=self._clock(),
        )
        try:
            self._subscriptions.append_history(entry)
        except Exception as e:  # noqa: BLE001
            self._log.error(
                "failure_history_write_failed",
                subscription_id=subscription_id,
                error=str(e),
            )
