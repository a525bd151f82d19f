"""Subscriptions: filter compilation, sync engine and management service."""

from src.subscription.compiler import (
    compile_filter,
    compile_subscription,
    expand_keywords,
    parse_filter_list,
)
from src.subscription.errors import (
    InvalidFilterError,
    SubscriptionAccessDeniedError,
    SubscriptionError,
    SubscriptionValidationError,
)
from src.subscription.metrics import SyncMetrics
from src.subscription.models import BulkSyncReport, SubscribedContent, SyncResult
from src.subscription.service import SubscriptionService
from src.subscription.state_machine import (
    SyncState,
    SyncStateMachine,
    SyncStateTransitionError,
)
from src.subscription.sync import SyncEngine


__all__ = [
    "BulkSyncReport",
    "InvalidFilterError",
    "SubscribedContent",
    "SubscriptionAccessDeniedError",
    "SubscriptionError",
    "SubscriptionService",
    "SubscriptionValidationError",
    "SyncEngine",
    "SyncMetrics",
    "SyncResult",
    "SyncState",
    "SyncStateMachine",
    "SyncStateTransitionError",
    "compile_filter",
    "compile_subscription",
    "expand_keywords",
    "parse_filter_list",
]
