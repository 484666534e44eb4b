"""SQLite adapter implementation for the PersistentStore port."""

import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy import create_engine, event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gifguard.shared.exceptions import StoreUnavailable
from .base_store import BaseStore
from .store_model import Base, KeyValueModel

logger = logging.getLogger(__name__)

PRAGMA_JOURNAL_MODE = "PRAGMA journal_mode=WAL"
PRAGMA_SYNCHRONOUS = "PRAGMA synchronous=NORMAL"


class SQLiteStore(BaseStore):
    """SQLite implementation of the PersistentStore port.

    SQLAlchemy calls are blocking, so they run on a single worker thread.
    One thread keeps writes applied in call order.
    """

    def __init__(self, db_path: Path):
        """Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file
        """
        super().__init__()
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False}
        )
        self._register_sqlite_pragmas()
        Base.metadata.create_all(self._engine)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gifguard-store")

    def _register_sqlite_pragmas(self):
        """Set SQLite PRAGMAs on each new connection."""
        @event.listens_for(self._engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            dbapi_connection.execute(PRAGMA_JOURNAL_MODE)
            dbapi_connection.execute(PRAGMA_SYNCHRONOUS)

    async def _run_sync(self, func, *args) -> Any:
        """Run a blocking function on the store thread."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, lambda: func(*args))

    def _read_sync(self, keys: List[str]) -> Dict[str, Any]:
        with Session(self._engine) as session:
            rows = session.scalars(select(KeyValueModel).where(KeyValueModel.key.in_(keys))).all()
            return {row.key: json.loads(row.value) for row in rows}

    def _write_sync(self, items: Dict[str, Any]) -> None:
        with Session(self._engine) as session:
            for key, value in items.items():
                session.merge(KeyValueModel(key=key, value=json.dumps(value)))
            session.commit()

    async def _read(self, keys: List[str]) -> Dict[str, Any]:
        try:
            return await self._run_sync(self._read_sync, keys)
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Failed to read keys {keys} from {self.db_path}: {e}")
            raise StoreUnavailable(f"Failed to read from store: {e}", operation="get", cause=e) from e

    async def _write(self, items: Dict[str, Any]) -> None:
        try:
            await self._run_sync(self._write_sync, items)
        except (SQLAlchemyError, TypeError) as e:
            logger.error(f"Failed to write keys {list(items)} to {self.db_path}: {e}")
            raise StoreUnavailable(f"Failed to write to store: {e}", operation="set", cause=e) from e

    async def close(self) -> None:
        """Dispose the engine and stop the store thread."""
        self._executor.shutdown(wait=True)
        self._engine.dispose()
