"""Persistent URL -> fingerprint cache."""

import asyncio
import logging
from itertools import islice
from typing import Any, Dict, Optional

from gifguard.const import FINGERPRINT_CACHE_MAX_SIZE, PERSIST_DEBOUNCE
from gifguard.shared.exceptions import StoreUnavailable
from .const import URL_HASH_CACHE_KEY
from .hash_bridge import HashComputeBridge
from .ports.persistent_store import PersistentStore

logger = logging.getLogger(__name__)


class FingerprintCache:
    """Insertion-ordered cache of source URL to fingerprint, backed by the store.

    Reads never evict. Writes mark the cache dirty and schedule one flush after
    ``debounce`` seconds; further writes before it fires join that flush. On
    flush the oldest entries beyond ``max_size`` are dropped first.
    """

    def __init__(
        self,
        store: PersistentStore,
        bridge: Optional[HashComputeBridge] = None,
        max_size: int = FINGERPRINT_CACHE_MAX_SIZE,
        debounce: float = PERSIST_DEBOUNCE,
    ):
        """Initialize the cache.

        Args:
            store: Persistent store holding the serialized mapping
            bridge: Compute bridge used by get_or_compute on a miss
            max_size: Maximum number of entries kept on persist
            debounce: Seconds to coalesce writes into a single persist
        """
        self._store = store
        self._bridge = bridge
        self.max_size = max_size
        self.debounce = debounce
        self._entries: Dict[str, str] = {}
        self._pending_write = False
        self._flush_handle: Optional[asyncio.TimerHandle] = None
        self._flush_task: Optional[asyncio.Task] = None
        self._inflight: Dict[str, asyncio.Task] = {}
        self.hits = 0
        self.misses = 0
        self.persist_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    async def load(self) -> None:
        """Load the persisted mapping. Called once at start-up."""
        data = await self._store.get([URL_HASH_CACHE_KEY])
        raw = data.get(URL_HASH_CACHE_KEY) or {}
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring persisted fingerprint cache of type {type(raw).__name__}")
            raw = {}
        self._entries = {
            url: fingerprint for url, fingerprint in raw.items()
            if isinstance(url, str) and isinstance(fingerprint, str)
        }
        logger.info(f"Loaded {len(self._entries)} cached fingerprints")

    def lookup(self, source_url: str) -> Optional[str]:
        """Return the cached fingerprint for ``source_url``, if any."""
        fingerprint = self._entries.get(source_url)
        if fingerprint is None:
            self.misses += 1
        else:
            self.hits += 1
        return fingerprint

    def record(self, source_url: str, fingerprint: str) -> None:
        """Insert or overwrite a mapping and schedule a debounced persist."""
        # Overwrites move the URL to the newest position
        self._entries.pop(source_url, None)
        self._entries[source_url] = fingerprint
        self._schedule_persist()

    async def get_or_compute(self, source_url: str) -> str:
        """Return the cached fingerprint, computing and recording it on a miss.

        Concurrent misses for the same URL share one computation.
        """
        fingerprint = self.lookup(source_url)
        if fingerprint is not None:
            logger.debug(f"Fingerprint cache hit for {source_url}")
            return fingerprint
        if self._bridge is None:
            raise RuntimeError("FingerprintCache has no compute bridge configured")

        task = self._inflight.get(source_url)
        if task is None:
            logger.debug(f"Fingerprint cache miss for {source_url}; computing")
            task = asyncio.create_task(self._compute_and_record(source_url))
            self._inflight[source_url] = task
            task.add_done_callback(lambda _: self._inflight.pop(source_url, None))
        return await asyncio.shield(task)

    async def _compute_and_record(self, source_url: str) -> str:
        fingerprint = await self._bridge.compute_fingerprint(source_url)
        self.record(source_url, fingerprint)
        return fingerprint

    def _schedule_persist(self) -> None:
        self._pending_write = True
        if self._flush_handle is None:
            loop = asyncio.get_running_loop()
            self._flush_handle = loop.call_later(self.debounce, self._on_flush_timer)

    def _on_flush_timer(self) -> None:
        self._flush_handle = None
        self._flush_task = asyncio.create_task(self._flush_in_background())

    async def _flush_in_background(self) -> None:
        try:
            await self.flush()
        except StoreUnavailable as e:
            # Stays dirty; the next record() schedules another attempt
            logger.error(f"Deferred fingerprint cache persist failed: {e}")

    async def flush(self) -> None:
        """Persist immediately if there are unsaved changes."""
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        if not self._pending_write:
            return

        self._pending_write = False
        self._trim()
        snapshot = dict(self._entries)
        try:
            await self._store.set({URL_HASH_CACHE_KEY: snapshot})
        except StoreUnavailable:
            self._pending_write = True
            raise
        self.persist_count += 1
        logger.debug(f"Persisted {len(snapshot)} cached fingerprints")

    def _trim(self) -> None:
        excess = len(self._entries) - self.max_size
        if excess <= 0:
            return
        for url in list(islice(self._entries, excess)):
            del self._entries[url]
        logger.info(f"Trimmed {excess} oldest fingerprint cache entries")

    def clear(self) -> None:
        """Drop every entry and schedule a persist of the empty cache."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        self._schedule_persist()
        logger.info("Fingerprint cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.hits + self.misses
        return {
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hits / total_requests if total_requests > 0 else 0,
            'size': len(self._entries),
            'max_size': self.max_size,
            'persists': self.persist_count,
            'pending_write': self._pending_write,
        }
