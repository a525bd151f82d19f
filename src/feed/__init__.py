"""Feed composition: hot, latest and personalized buckets.

The composer itself lives in ``src.feed.composer``; it depends on the
personalization package, which in turn builds on the selectors here.
"""

from src.feed.fanout import Branch, BranchOutcome, run_all_settled
from src.feed.metrics import FeedMetrics
from src.feed.models import BucketAllocation, FeedPage, FeedTab
from src.feed.selectors import HotSelector, LatestSelector
from src.feed.state_machine import (
    ComposeState,
    ComposeStateMachine,
    ComposeStateTransitionError,
)


__all__ = [
    "Branch",
    "BranchOutcome",
    "BucketAllocation",
    "ComposeState",
    "ComposeStateMachine",
    "ComposeStateTransitionError",
    "FeedMetrics",
    "FeedPage",
    "FeedTab",
    "HotSelector",
    "LatestSelector",
    "run_all_settled",
]
