from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel, Field

from gifguard.phash.domain.block_decision import BlockDecision
from gifguard.phash.service import PerceptualHashService
from gifguard.shared.logging import LoggingManager


class FingerprintRequest(BaseModel):
    url: str = Field(min_length=1, description="Thumbnail URL to fingerprint")


class FingerprintRouter:
    """Router for fingerprint and block-decision endpoints.

    Callers must treat an ``error`` in the response as "could not evaluate"
    and leave the item unblocked.
    """

    def __init__(self, service: PerceptualHashService):
        self.service = service
        self.logger = LoggingManager.get_logger(__name__)
        self.router = APIRouter(prefix="/fingerprint", tags=["fingerprint"])
        self.router.post("", response_model=Dict[str, Any])(self.request_fingerprint)
        self.router.post("/check", response_model=BlockDecision)(self.check)

    @classmethod
    def get_router(cls, service: PerceptualHashService) -> APIRouter:
        """Get the router instance."""
        return cls(service).router

    async def request_fingerprint(self, request: FingerprintRequest) -> Dict[str, Any]:
        """Return ``{"fingerprint": ...}`` or ``{"error": ...}`` for a thumbnail URL."""
        result = await self.service.request_fingerprint(request.url)
        return result.to_message()

    async def check(self, request: FingerprintRequest) -> BlockDecision:
        """Decide whether the thumbnail at ``url`` is blocked."""
        decision = await self.service.evaluate(request.url)
        if decision.blocked:
            self.logger.info(f"Blocking {request.url} (distance {decision.distance})")
        return decision
