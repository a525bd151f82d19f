"""Data models for the ranking module."""

from dataclasses import dataclass

from src.store.models import ContentItem


@dataclass(frozen=True)
class ScoredItem:
    """A content item with its computed score.

    Attributes:
        item: The scored item.
        score: Final score (engagement times decay, or a personal score).
        decay: Recency multiplier applied, when the scorer uses one.
    """

    item: ContentItem
    score: float
    decay: float = 1.0

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for serialization."""
        return {
            "type": self.item.type.value,
            "id": self.item.id,
            "score": round(self.score, 6),
            "decay": round(self.decay, 6),
        }
