"""Approximate blocklist matching over perceptual fingerprints."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from gifguard.const import DECISION_CACHE_MAX_SIZE, MATCH_THRESHOLD
from .const import BLOCKED_HASHES_KEY
from .distance import hamming_distance
from .domain.blocked_item import BlockedItem, StoredBlockedItem, normalize_blocklist, stored_fingerprint
from .ports.persistent_store import PersistentStore

logger = logging.getLogger(__name__)


class BlockDecisionMatcher:
    """Decides whether a fingerprint is blocked, tolerating re-encoding noise.

    A fingerprint is blocked when some blocklist entry lies strictly closer
    than ``threshold`` bits. Decisions are memoized per fingerprint; the memo
    is cleared wholesale when full and whenever the blocklist changes.

    The blocklist itself lives in the store. This class keeps a normalized,
    read-only view of it, refreshed from store change notifications and after
    its own writes. Writes go through one lock so concurrent edits are not lost.
    """

    def __init__(
        self,
        store: PersistentStore,
        threshold: int = MATCH_THRESHOLD,
        decision_cache_max_size: int = DECISION_CACHE_MAX_SIZE,
    ):
        self._store = store
        self.threshold = threshold
        self.decision_cache_max_size = decision_cache_max_size
        self._items: List[BlockedItem] = []
        # fingerprint -> distance to its match, None when unblocked
        self._decisions: Dict[str, Optional[Union[int, float]]] = {}
        self._mutation_lock = asyncio.Lock()
        self.decision_hits = 0
        self.decision_misses = 0

    @property
    def items(self) -> List[BlockedItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    async def load(self) -> None:
        """Load the blocklist view from the store."""
        self._apply(await self._read_raw())
        logger.info(f"Loaded {len(self._items)} blocklist entries")

    def handle_store_change(self, changes: Dict[str, Any]) -> None:
        """Store listener: refresh the view when the blocklist key changes."""
        if BLOCKED_HASHES_KEY in changes:
            self._apply(changes[BLOCKED_HASHES_KEY])

    def _apply(self, raw: Optional[Iterable[StoredBlockedItem]]) -> None:
        self._items = normalize_blocklist(raw)
        self.invalidate()

    def invalidate(self) -> None:
        """Forget every memoized decision."""
        self._decisions.clear()

    # =========================================================================
    # Matching
    # =========================================================================

    def find_match(self, fingerprint: str) -> Optional[Tuple[BlockedItem, Union[int, float]]]:
        """Return the first blocklist entry within the threshold and its distance."""
        for item in self._items:
            distance = hamming_distance(fingerprint, item.fingerprint)
            if distance < self.threshold:
                return item, distance
        return None

    def match_distance(self, fingerprint: str) -> Optional[Union[int, float]]:
        """Distance to the matching blocklist entry, or None when not blocked. Memoized."""
        if fingerprint in self._decisions:
            self.decision_hits += 1
            return self._decisions[fingerprint]

        self.decision_misses += 1
        match = self.find_match(fingerprint)
        distance = match[1] if match is not None else None
        if len(self._decisions) >= self.decision_cache_max_size:
            self._decisions.clear()
        self._decisions[fingerprint] = distance
        return distance

    def is_blocked(self, fingerprint: str) -> bool:
        """Return True if ``fingerprint`` matches any blocklist entry."""
        return self.match_distance(fingerprint) is not None

    # =========================================================================
    # Blocklist mutation
    # =========================================================================

    async def _read_raw(self) -> List[StoredBlockedItem]:
        data = await self._store.get([BLOCKED_HASHES_KEY])
        raw = data.get(BLOCKED_HASHES_KEY) or []
        if not isinstance(raw, list):
            logger.warning(f"Ignoring persisted blocklist of type {type(raw).__name__}")
            return []
        return raw

    async def _write_raw(self, raw: List[StoredBlockedItem]) -> None:
        await self._store.set({BLOCKED_HASHES_KEY: raw})
        self._apply(raw)

    async def add_to_blocklist(self, fingerprint: str, source_url: Optional[str] = None) -> bool:
        """Append a blocklist entry unless the exact fingerprint is already listed.

        Returns:
            True if a new entry was written.
        """
        async with self._mutation_lock:
            raw = await self._read_raw()
            if any(stored_fingerprint(entry) == fingerprint for entry in raw):
                self.invalidate()
                logger.info(f"Fingerprint {fingerprint[:16]}... already blocklisted")
                return False

            item = BlockedItem(fingerprint=fingerprint, source_url=source_url, created_at=datetime.now(timezone.utc))
            raw.append(item.to_dict())
            await self._write_raw(raw)
            logger.info(f"Blocklisted fingerprint {fingerprint[:16]}... from {source_url}")
            return True

    async def remove_from_blocklist(self, fingerprint: str) -> bool:
        """Remove every entry with exactly this fingerprint. Returns True if any were removed."""
        async with self._mutation_lock:
            raw = await self._read_raw()
            kept = [entry for entry in raw if stored_fingerprint(entry) != fingerprint]
            if len(kept) == len(raw):
                return False
            await self._write_raw(kept)
            logger.info(f"Removed fingerprint {fingerprint[:16]}... from blocklist")
            return True

    async def import_blocklist(self, entries: Iterable[Any]) -> int:
        """Merge entries in either persisted shape, skipping exact duplicates.

        Returns:
            Number of entries added.
        """
        async with self._mutation_lock:
            raw = await self._read_raw()
            known = {stored_fingerprint(entry) for entry in raw}
            added = 0
            for entry in entries:
                item = BlockedItem.from_stored(entry)
                if item is None or item.fingerprint in known:
                    continue
                known.add(item.fingerprint)
                raw.append(entry if isinstance(entry, str) else item.to_dict())
                added += 1
            if added:
                await self._write_raw(raw)
            logger.info(f"Imported {added} new blocklist entries")
            return added

    async def export_blocklist(self) -> List[StoredBlockedItem]:
        """Return the persisted blocklist as stored, legacy entries included."""
        return await self._read_raw()

    async def clear_blocklist(self) -> None:
        """Remove every blocklist entry."""
        async with self._mutation_lock:
            await self._write_raw([])
            logger.info("Blocklist cleared")

    def list_blocklist(self) -> List[BlockedItem]:
        """Blocklist entries, newest first."""
        return list(reversed(self._items))

    def get_stats(self) -> Dict[str, Any]:
        return {
            'entries': len(self._items),
            'threshold': self.threshold,
            'decision_cache_size': len(self._decisions),
            'decision_cache_max_size': self.decision_cache_max_size,
            'decision_hits': self.decision_hits,
            'decision_misses': self.decision_misses,
        }
