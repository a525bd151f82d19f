"""Recency decay shared by every scorer."""

from datetime import UTC, datetime

from src.ranking.constants import DEFAULT_HALF_LIFE_DAYS, MIN_DECAY, SECONDS_PER_DAY
from src.store.models import coerce_timestamp


def time_decay(
    published_at: datetime | str | None,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
    now: datetime | None = None,
) -> float:
    """Compute the recency multiplier for an item.

    Uses half-life decay: 2^(-days_old / half_life), floored at 0.1.
    Items with no usable date get the floor; items dated now or in the
    future get 1.0.

    Args:
        published_at: Publication time as datetime or ISO string.
        half_life_days: Days after which the multiplier halves.
        now: Reference time; defaults to the current UTC time.

    Returns:
        Multiplier in [0.1, 1.0].

    Raises:
        ValueError: If half_life_days is not positive.
    """
    if half_life_days <= 0:
        msg = f"half_life_days must be positive, got {half_life_days}"
        raise ValueError(msg)

    published = coerce_timestamp(published_at)
    if published is None:
        return MIN_DECAY

    reference = coerce_timestamp(now) or datetime.now(UTC)
    days_old = (reference - published).total_seconds() / SECONDS_PER_DAY
    if days_old <= 0:
        return 1.0

    return max(2.0 ** (-days_old / half_life_days), MIN_DECAY)
