"""Application wiring for the gifguard service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from gifguard.const import APP_DESCRIPTION, APP_TITLE, APP_VERSION
from gifguard.phash.infrastructure.compute import SubprocessComputeResource
from gifguard.phash.infrastructure.store import SQLiteStore
from gifguard.phash.service import PerceptualHashService
from gifguard.shared.config import Config
from gifguard.shared.logging import LoggingManager
from gifguard.slices.blocklist.blocklist_router import BlocklistRouter
from gifguard.slices.fingerprint.fingerprint_router import FingerprintRouter
from gifguard.slices.health.health_router import HealthRouter


class GifGuardApp:
    """Main application class for gifguard."""

    def __init__(self, config: Optional[Config] = None, service: Optional[PerceptualHashService] = None):
        self.config = config or Config()
        self.logger = LoggingManager.get_logger(__name__)

        # Default wiring: SQLite persistence and a worker process for hashing
        self.store = None
        if service is None:
            self.store = SQLiteStore(self.config.store_path)
            service = PerceptualHashService(self.store, SubprocessComputeResource, config=self.config)
        self.service = service

        # Initialize routers
        self.fingerprint_router = FingerprintRouter.get_router(self.service)
        self.blocklist_router = BlocklistRouter.get_router(self.service)
        self.health_router = HealthRouter.get_router(self.service)

        # Create FastAPI app
        self.app = FastAPI(
            title=APP_TITLE,
            description=APP_DESCRIPTION,
            version=APP_VERSION,
            lifespan=self._lifespan,
        )

        # Mount slices
        self.app.include_router(self.fingerprint_router)
        self.app.include_router(self.blocklist_router)
        self.app.include_router(self.health_router)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.service.start()
        self.logger.info(f"{APP_TITLE} ready")
        try:
            yield
        finally:
            await self.service.close()
            if self.store is not None:
                await self.store.close()


def create_app(config: Optional[Config] = None, service: Optional[PerceptualHashService] = None) -> FastAPI:
    """Build the FastAPI application, optionally around an existing service."""
    return GifGuardApp(config=config, service=service).app
