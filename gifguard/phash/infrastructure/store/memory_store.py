"""In-memory store adapter, used for tests and ephemeral runs."""

import copy
from typing import Any, Dict, List, Optional

from .base_store import BaseStore


class InMemoryStore(BaseStore):
    """Dictionary-backed implementation of the PersistentStore port."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        super().__init__()
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.write_count = 0

    async def _read(self, keys: List[str]) -> Dict[str, Any]:
        return {key: copy.deepcopy(self._data[key]) for key in keys if key in self._data}

    async def _write(self, items: Dict[str, Any]) -> None:
        self.write_count += 1
        for key, value in items.items():
            self._data[key] = copy.deepcopy(value)

    async def close(self) -> None:
        pass
