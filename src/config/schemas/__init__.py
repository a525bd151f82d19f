"""Configuration schemas."""

from src.config.schemas.engine import (
    DiscoveryConfig,
    EngineConfig,
    FeedConfig,
    GenericWeights,
    HotnessConfig,
    PersonalizationConfig,
    SubscriptionConfig,
    TypeWeights,
)


__all__ = [
    "DiscoveryConfig",
    "EngineConfig",
    "FeedConfig",
    "GenericWeights",
    "HotnessConfig",
    "PersonalizationConfig",
    "SubscriptionConfig",
    "TypeWeights",
]
