import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from ..const import ITEM_HASH_FIELD, ITEM_TIMESTAMP_FIELD, ITEM_URL_FIELD

logger = logging.getLogger(__name__)

StoredBlockedItem = Union[str, Dict[str, Any]]


@dataclass(frozen=True)
class BlockedItem:
    """Domain entity representing one blocklisted fingerprint.

    The persisted blocklist holds either objects ``{"hash", "url", "timestamp"}``
    or legacy bare fingerprint strings. Both are normalized to this shape.
    """

    fingerprint: str
    source_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_stored(cls, item: StoredBlockedItem) -> Optional["BlockedItem"]:
        """Normalize a persisted entry, returning None if it carries no fingerprint."""
        if isinstance(item, str):
            return cls(fingerprint=item) if item else None
        if not isinstance(item, dict):
            return None

        fingerprint = item.get(ITEM_HASH_FIELD)
        if not isinstance(fingerprint, str) or not fingerprint:
            return None

        created_at = None
        timestamp = item.get(ITEM_TIMESTAMP_FIELD)
        if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool):
            created_at = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)

        return cls(fingerprint=fingerprint, source_url=item.get(ITEM_URL_FIELD), created_at=created_at)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted object form (timestamp in epoch milliseconds)."""
        timestamp = int(self.created_at.timestamp() * 1000) if self.created_at else None
        return {
            ITEM_HASH_FIELD: self.fingerprint,
            ITEM_URL_FIELD: self.source_url,
            ITEM_TIMESTAMP_FIELD: timestamp,
        }


def stored_fingerprint(item: StoredBlockedItem) -> Optional[str]:
    """Fingerprint of a persisted entry in either shape."""
    normalized = BlockedItem.from_stored(item)
    return normalized.fingerprint if normalized else None


def normalize_blocklist(raw: Optional[Iterable[StoredBlockedItem]]) -> List[BlockedItem]:
    """Normalize a persisted blocklist, dropping entries without a fingerprint."""
    items = []
    for entry in raw or []:
        item = BlockedItem.from_stored(entry)
        if item is None:
            logger.debug(f"Skipping unreadable blocklist entry: {entry!r}")
            continue
        items.append(item)
    return items
