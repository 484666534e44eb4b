"""Perceptual hash service: owns the caches, the compute resource and the blocklist view."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from gifguard.shared.config import Config
from gifguard.shared.exceptions import GifGuardError, StoreUnavailable
from .const import BLOCKED_USERS_KEY, MUTE_ON_BLOCK_KEY
from .domain.block_decision import BlockDecision
from .domain.fingerprint_result import FingerprintResult
from .fingerprint_cache import FingerprintCache
from .hash_bridge import HashComputeBridge
from .matcher import BlockDecisionMatcher
from .ports.persistent_store import PersistentStore
from .resource_manager import ComputeResourceManager, ResourceFactory

logger = logging.getLogger(__name__)


class PerceptualHashService:
    """Single owner of all mutable matching state for one process.

    Construct once, ``await start()``, hand the instance to callers, and
    ``await close()`` on shutdown. Public request methods never raise for
    service-level failures: an item that cannot be evaluated is reported with
    an error and treated as unblocked.

    Management methods that only edit stored state raise ``StoreUnavailable``.
    """

    def __init__(self, store: PersistentStore, resource_factory: ResourceFactory, config: Optional[Config] = None):
        config = config or Config()
        self.config = config
        self.store = store
        self.manager = ComputeResourceManager(resource_factory, idle_timeout=config.resource_idle_timeout)
        self.bridge = HashComputeBridge(
            self.manager,
            request_timeout=config.request_timeout,
            init_grace=config.resource_init_grace,
        )
        self.cache = FingerprintCache(
            store,
            self.bridge,
            max_size=config.fingerprint_cache_max_size,
            debounce=config.persist_debounce,
        )
        self.matcher = BlockDecisionMatcher(
            store,
            threshold=config.match_threshold,
            decision_cache_max_size=config.decision_cache_max_size,
        )
        self.mute_on_block = False
        self._muted_users: List[str] = []
        self._users_lock = asyncio.Lock()
        self.store_available = True
        self._started = False

    async def start(self) -> None:
        """Load persisted state and subscribe to store changes."""
        if self._started:
            return
        try:
            await self.cache.load()
            await self.matcher.load()
            settings = await self.store.get([BLOCKED_USERS_KEY, MUTE_ON_BLOCK_KEY])
            self._apply_settings(settings)
        except StoreUnavailable as e:
            self.store_available = False
            logger.error(f"Starting with empty state, store unavailable: {e}")
        self.store.subscribe(self._on_store_change)
        self._started = True
        logger.info("Perceptual hash service started")

    async def close(self) -> None:
        """Flush pending cache writes and release the compute resource."""
        try:
            await self.cache.flush()
        except StoreUnavailable as e:
            logger.error(f"Could not persist fingerprint cache on shutdown: {e}")
        await self.manager.teardown()
        logger.info("Perceptual hash service stopped")

    def _on_store_change(self, changes: Dict[str, Any]) -> None:
        self.matcher.handle_store_change(changes)
        self._apply_settings(changes)

    def _apply_settings(self, values: Dict[str, Any]) -> None:
        if BLOCKED_USERS_KEY in values:
            users = values[BLOCKED_USERS_KEY] or []
            self._muted_users = [user for user in users if isinstance(user, str)]
        if MUTE_ON_BLOCK_KEY in values:
            self.mute_on_block = bool(values[MUTE_ON_BLOCK_KEY])

    # =========================================================================
    # Fingerprints and decisions
    # =========================================================================

    async def request_fingerprint(self, source_url: str) -> FingerprintResult:
        """Fingerprint a thumbnail URL; failures come back as ``{error}``."""
        try:
            fingerprint = await self.cache.get_or_compute(source_url)
        except GifGuardError as e:
            logger.warning(f"Could not fingerprint {source_url}: {e.__class__.__name__}: {e.message}")
            return FingerprintResult.failure(e.message)
        return FingerprintResult.success(fingerprint)

    async def evaluate(self, source_url: str) -> BlockDecision:
        """Decide whether a thumbnail should be hidden. Errors fail open."""
        result = await self.request_fingerprint(source_url)
        if not result.ok:
            return BlockDecision(url=source_url, blocked=False, error=result.error)

        decision = BlockDecision(url=source_url, fingerprint=result.fingerprint)
        distance = self.matcher.match_distance(result.fingerprint)
        if distance is not None:
            decision.blocked = True
            decision.distance = int(distance)
        return decision

    async def check(self, source_url: str) -> bool:
        """Fail-open block decision for ``source_url``."""
        return (await self.evaluate(source_url)).blocked

    async def block(self, source_url: str, username: Optional[str] = None) -> FingerprintResult:
        """Blocklist the thumbnail at ``source_url``; optionally mute its poster."""
        result = await self.request_fingerprint(source_url)
        if not result.ok:
            return result
        try:
            await self.matcher.add_to_blocklist(result.fingerprint, source_url)
            if username and self.mute_on_block:
                await self.mute_user(username)
        except GifGuardError as e:
            logger.error(f"Could not blocklist {source_url}: {e.__class__.__name__}: {e.message}")
            return FingerprintResult.failure(e.message)
        return result
        await self.matcher.add_to_blocklist(result.fingerprint, source_url)
        if username and self.mute_on_block:
            await self.mute_user(username)
        return result

    # =========================================================================
    # Muted users and settings
    # =========================================================================

    def is_user_muted(self, username: str) -> bool:
        return username in self._muted_users

    @property
    def muted_users(self) -> List[str]:
        return list(self._muted_users)

    async def mute_user(self, username: str) -> bool:
        """Add ``username`` to the muted users. Returns False if already muted."""
        async with self._users_lock:
            data = await self.store.get([BLOCKED_USERS_KEY])
            users = list(data.get(BLOCKED_USERS_KEY) or [])
            if username in users:
                return False
            users.append(username)
            await self.store.set({BLOCKED_USERS_KEY: users})
            self._muted_users = users
            logger.info(f"Muted user {username}")
            return True

    async def set_mute_on_block(self, enabled: bool) -> None:
        await self.store.set({MUTE_ON_BLOCK_KEY: enabled})
        self.mute_on_block = enabled

    async def clear_all(self) -> None:
        """Clear the blocklist and the muted users."""
        await self.matcher.clear_blocklist()
        async with self._users_lock:
            await self.store.set({BLOCKED_USERS_KEY: []})
            self._muted_users = []
        logger.info("Cleared blocklist and muted users")

    def get_stats(self) -> Dict[str, Any]:
        return {
            'resource_state': self.manager.state.value,
            'resource_creations': self.manager.creation_count,
            'pending_requests': self.bridge.pending_count,
            'requests': self.bridge.requests,
            'failed_requests': self.bridge.failures,
            'fingerprint_cache': self.cache.get_stats(),
            'blocklist': self.matcher.get_stats(),
            'muted_users': len(self._muted_users),
            'mute_on_block': self.mute_on_block,
            'store_available': self.store_available,
        }
