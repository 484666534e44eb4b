from fastapi import APIRouter
from typing import Dict, Any

from gifguard.const import HEALTH_STATUS_DEGRADED, HEALTH_STATUS_HEALTHY
from gifguard.phash.service import PerceptualHashService
from gifguard.shared.logging import LoggingManager


class HealthRouter:
    """Router for health endpoints."""

    def __init__(self, service: PerceptualHashService):
        self.service = service
        self.router = APIRouter(prefix="/health", tags=["health"])
        self.logger = LoggingManager.get_logger(__name__)
        self.router.get("", response_model=Dict[str, Any])(self.health_check)

    @classmethod
    def get_router(cls, service: PerceptualHashService) -> APIRouter:
        """Get the router instance."""
        return cls(service).router

    async def health_check(self) -> Dict[str, Any]:
        """Report service status, compute resource state and cache sizes."""
        stats = self.service.get_stats()
        status = HEALTH_STATUS_HEALTHY if stats["store_available"] else HEALTH_STATUS_DEGRADED
        self.logger.debug(f"Health check result: {status} (resource: {stats['resource_state']})")
        return {
            "status": status,
            "resource": stats["resource_state"],
            "stats": stats,
        }
