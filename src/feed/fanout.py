"""Concurrent fan-out with per-branch failure isolation.

Composers issue several independent store reads per request. Each read is a
``Branch``; ``run_all_settled`` runs them on a thread pool and replaces any
branch that raises with its empty default, so one failing content family
never fails the whole page.
"""

import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from src.feed.metrics import FeedMetrics


logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class Branch(Generic[T]):
    """One independent unit of work in a fan-out.

    Attributes:
        name: Label used in logs and metrics, usually the content family.
        call: Zero-argument callable producing the branch value.
        default: Value substituted when the call raises.
    """

    name: str
    call: Callable[[], T]
    default: T


@dataclass(frozen=True)
class BranchOutcome(Generic[T]):
    """Settled result of one branch."""

    name: str
    value: T
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        """True if the branch completed without raising."""
        return self.error is None


def _settle(branch: Branch[T], log: structlog.stdlib.BoundLogger) -> BranchOutcome[T]:
    start = time.perf_counter()
    try:
        value = branch.call()
    except Exception as e:  # noqa: BLE001
        duration_ms = (time.perf_counter() - start) * 1000
        log.warning(
            "branch_failed",
            branch=branch.name,
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=round(duration_ms, 2),
        )
        FeedMetrics.get_instance().record_branch_failure(branch.name)
        return BranchOutcome(
            name=branch.name,
            value=branch.default,
            error=str(e) or type(e).__name__,
            duration_ms=duration_ms,
        )
    return BranchOutcome(
        name=branch.name,
        value=value,
        duration_ms=(time.perf_counter() - start) * 1000,
    )


def run_all_settled(
    branches: Sequence[Branch[T]],
    max_workers: int = 4,
    component: str = "fanout",
) -> list[BranchOutcome[T]]:
    """Run branches concurrently and wait for all of them.

    Args:
        branches: Work to run.
        max_workers: Thread pool size; 1 or less runs sequentially.
        component: Component name bound on log events.

    Returns:
        One outcome per branch, in input order.
    """
    log = logger.bind(component=component, subcomponent="fanout")
    if not branches:
        return []

    if max_workers <= 1 or len(branches) == 1:
        return [_settle(branch, log) for branch in branches]

    outcomes: dict[int, BranchOutcome[T]] = {}
    with ThreadPoolExecutor(max_workers=min(max_workers, len(branches))) as executor:
        future_to_index = {
            executor.submit(_settle, branch, log): idx
            for idx, branch in enumerate(branches)
        }
        for future in as_completed(future_to_index):
            outcomes[future_to_index[future]] = future.result()

    return [outcomes[idx] for idx in range(len(branches))]
