"""Persistent store adapters."""

from .base_store import BaseStore
from .memory_store import InMemoryStore
from .sqlite_store import SQLiteStore

__all__ = ["BaseStore", "InMemoryStore", "SQLiteStore"]
