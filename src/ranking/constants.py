"""Constants for the ranking module."""

# Decay floor: stale or undated items keep a tenth of their engagement score
MIN_DECAY: float = 0.1

# Applied when a family has no configured half-life
DEFAULT_HALF_LIFE_DAYS: float = 30.0

SECONDS_PER_DAY: float = 24 * 60 * 60
