"""Base adapter for persistent stores with shared change notification."""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ...ports.persistent_store import PersistentStore, StoreListener

logger = logging.getLogger(__name__)


class BaseStore(PersistentStore, ABC):
    """Abstract base class for store adapters.

    Provides listener bookkeeping and notification after every write.
    Subclasses implement ``_read`` and ``_write``.
    """

    def __init__(self):
        self._listeners: List[StoreListener] = []

    async def get(self, keys: List[str]) -> Dict[str, Any]:
        """Return a mapping of the requested keys that exist in the store."""
        return await self._read(list(keys))

    async def set(self, items: Dict[str, Any]) -> None:
        """Write every key in ``items`` and notify change listeners."""
        if not items:
            return
        await self._write(dict(items))
        self._notify(items)

    def subscribe(self, listener: StoreListener) -> None:
        """Register a callback receiving ``{key: new_value}`` after each write."""
        self._listeners.append(listener)

    def _notify(self, changes: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(copy.deepcopy(changes))
            except Exception:
                logger.exception(f"Store change listener {listener!r} failed")

    # =========================================================================
    # Backend-specific methods
    # =========================================================================

    @abstractmethod
    async def _read(self, keys: List[str]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def _write(self, items: Dict[str, Any]) -> None:
        pass
