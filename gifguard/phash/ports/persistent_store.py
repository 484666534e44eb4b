"""Port interface for the persistent key-value store."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List

StoreListener = Callable[[Dict[str, Any]], None]


class PersistentStore(ABC):
    """Port interface for async key-value persistence.

    Values are JSON-compatible. There are no transactional guarantees across
    keys; each ``set`` call is applied key by key.
    """

    @abstractmethod
    async def get(self, keys: List[str]) -> Dict[str, Any]:
        """Return a mapping of the requested keys that exist in the store."""
        pass

    @abstractmethod
    async def set(self, items: Dict[str, Any]) -> None:
        """Write every key in ``items`` and notify change listeners."""
        pass

    @abstractmethod
    def subscribe(self, listener: StoreListener) -> None:
        """Register a callback receiving ``{key: new_value}`` after each write."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release any underlying connection."""
        pass
