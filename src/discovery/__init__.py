"""Discovery pages: single-family and mixed listings with a pinned overlay."""

from src.discovery.composer import (
    DiscoveryComposer,
    clamp_page,
    is_relevant_news,
    mixed_page_plan,
)
from src.discovery.models import DiscoveryPage, DiscoveryType, SortType
from src.discovery.pins import StorePinService


__all__ = [
    "DiscoveryComposer",
    "DiscoveryPage",
    "DiscoveryType",
    "SortType",
    "StorePinService",
    "clamp_page",
    "is_relevant_news",
    "mixed_page_plan",
]
