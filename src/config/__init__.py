"""Configuration loading and validation module."""

from src.config.loader import ConfigValidationError, LoadedConfig, load_engine_config
from src.config.schemas import (
    DiscoveryConfig,
    EngineConfig,
    FeedConfig,
    HotnessConfig,
    PersonalizationConfig,
    SubscriptionConfig,
    TypeWeights,
)


__all__ = [
    "ConfigValidationError",
    "DiscoveryConfig",
    "EngineConfig",
    "FeedConfig",
    "HotnessConfig",
    "LoadedConfig",
    "PersonalizationConfig",
    "SubscriptionConfig",
    "TypeWeights",
    "load_engine_config",
]
