"""Pin service over the content families."""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

import structlog

from src.store.errors import ContentNotFoundError, StoreUnavailableError
from src.store.models import ContentItem, ContentType, PinnedItem
from src.store.predicates import Equals, OrderBy
from src.store.protocols import ContentStore


logger = structlog.get_logger()

PINNABLE_FAMILIES: tuple[ContentType, ...] = (
    ContentType.PAPER,
    ContentType.VIDEO,
    ContentType.REPO,
    ContentType.MODEL,
    ContentType.JOB,
    ContentType.NEWS,
)


@runtime_checkable
class WritableContentStore(ContentStore, Protocol):
    """Content store that can replace an item."""

    def upsert(self, item: ContentItem) -> ContentItem:
        """Insert or replace an item."""
        ...


class StorePinService:
    """Reads and toggles the pinned flag on stored items."""

    def __init__(
        self,
        stores: Mapping[ContentType, ContentStore],
        now: datetime | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            stores: Content adapters by family.
            now: Fixed clock for pin timestamps; None uses the clock.
        """
        self._stores = stores
        self._now = now
        self._log = logger.bind(component="discovery", subcomponent="pins")

    def toggle_pin(self, content_type: ContentType, content_id: str) -> ContentItem:
        """Flip an item's pinned flag.

        Args:
            content_type: Item family.
            content_id: Item identifier.

        Returns:
            The updated item.

        Raises:
            StoreUnavailableError: If the family cannot be pinned.
            ContentNotFoundError: If the item does not exist.
        """
        store = self._stores.get(content_type)
        if content_type not in PINNABLE_FAMILIES or store is None:
            raise StoreUnavailableError(content_type.value, "family is not pinnable")
        if not isinstance(store, WritableContentStore):
            raise StoreUnavailableError(content_type.value, "store is read-only")

        found = store.find_by_ids([content_id])
        if not found:
            raise ContentNotFoundError(content_type.value, content_id)

        item = found[0]
        pinned = not item.is_pinned
        updated = item.model_copy(
            update={
                "is_pinned": pinned,
                "pinned_at": (self._now or datetime.now(UTC)) if pinned else None,
            }
        )
        store.upsert(updated)
        self._log.info(
            "pin_toggled",
            content_type=content_type.value,
            content_id=content_id,
            pinned=pinned,
        )
        return updated

    def get_pinned_items(
        self, content_type: ContentType | None = None
    ) -> list[PinnedItem]:
        """Return pinned items, most recently pinned first.

        A family whose store fails is logged and skipped.

        Args:
            content_type: Restrict to one family; None scans every family.

        Returns:
            Pinned items sorted by pin time, newest first.
        """
        families = [content_type] if content_type else list(PINNABLE_FAMILIES)
        pinned: list[PinnedItem] = []
        for family in families:
            store = self._stores.get(family)
            if store is None:
                continue
            try:
                items = store.find_many(
                    where=Equals("is_pinned", True),
                    order_by=OrderBy("pinned_at", descending=True),
                )
            except Exception as e:  # noqa: BLE001
                self._log.error(
                    "pinned_fetch_failed",
                    content_type=family.value,
                    error=str(e),
                )
                continue
            pinned.extend(
                PinnedItem(
                    content_type=family,
                    content_id=item.id,
                    pinned_at=item.pinned_at,
                    item=item,
                )
                for item in items
            )

        epoch = datetime.min.replace(tzinfo=UTC)
        pinned.sort(key=lambda p: p.pinned_at or epoch, reverse=True)
        return pinned
