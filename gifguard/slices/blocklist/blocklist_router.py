from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from gifguard.phash.service import PerceptualHashService
from gifguard.shared.exceptions import StoreUnavailable
from gifguard.shared.logging import LoggingManager

HTTP_NOT_FOUND = 404
HTTP_UNPROCESSABLE = 422
HTTP_SERVICE_UNAVAILABLE = 503


class BlockRequest(BaseModel):
    url: str = Field(min_length=1, description="Thumbnail URL of the media to block")
    username: Optional[str] = Field(default=None, description="Poster to mute when mute-on-block is enabled")


class SettingsRequest(BaseModel):
    mute_on_block: bool


class BlocklistRouter:
    """Router for blocklist management endpoints."""

    def __init__(self, service: PerceptualHashService):
        self.service = service
        self.logger = LoggingManager.get_logger(__name__)
        self.router = APIRouter(prefix="/blocklist", tags=["blocklist"])
        self.router.get("", response_model=List[Dict[str, Any]])(self.list_blocklist)
        self.router.post("", response_model=Dict[str, Any])(self.block)
        self.router.delete("", response_model=Dict[str, Any])(self.clear)
        self.router.get("/export", response_model=List[Union[str, Dict[str, Any]]])(self.export_blocklist)
        self.router.post("/import", response_model=Dict[str, Any])(self.import_blocklist)
        self.router.put("/settings", response_model=Dict[str, Any])(self.update_settings)
        self.router.get("/users/{username}", response_model=Dict[str, Any])(self.user_status)
        self.router.delete("/{fingerprint}", response_model=Dict[str, Any])(self.unblock)

    @classmethod
    def get_router(cls, service: PerceptualHashService) -> APIRouter:
        """Get the router instance."""
        return cls(service).router

    async def list_blocklist(self) -> List[Dict[str, Any]]:
        """Blocklist entries, newest first."""
        return [
            {
                "fingerprint": item.fingerprint,
                "url": item.source_url,
                "created_at": item.created_at.isoformat() if item.created_at else None,
            }
            for item in self.service.matcher.list_blocklist()
        ]

    async def block(self, request: BlockRequest) -> Dict[str, Any]:
        """Fingerprint a thumbnail and add it to the blocklist."""
        result = await self.service.block(request.url, request.username)
        if not result.ok:
            self.logger.error(f"Failed to block {request.url}: {result.error}")
            raise HTTPException(status_code=HTTP_UNPROCESSABLE, detail=result.error)
        return {"fingerprint": result.fingerprint, "entries": len(self.service.matcher)}

    def _store_unavailable(self, action: str, error: StoreUnavailable) -> HTTPException:
        self.logger.error(f"Failed to {action}: {error.message}")
        return HTTPException(status_code=HTTP_SERVICE_UNAVAILABLE, detail=error.message)

    async def unblock(self, fingerprint: str) -> Dict[str, Any]:
        """Remove a fingerprint from the blocklist."""
        try:
            removed = await self.service.matcher.remove_from_blocklist(fingerprint)
        except StoreUnavailable as e:
            raise self._store_unavailable("unblock fingerprint", e) from e
        if not removed:
            raise HTTPException(status_code=HTTP_NOT_FOUND, detail="Fingerprint is not blocklisted")
        return {"removed": fingerprint, "entries": len(self.service.matcher)}

    async def clear(self) -> Dict[str, Any]:
        """Clear all blocked fingerprints and muted users."""
        try:
            await self.service.clear_all()
        except StoreUnavailable as e:
            raise self._store_unavailable("clear blocklist", e) from e
        return {"entries": 0, "muted_users": 0}

    async def export_blocklist(self) -> List[Union[str, Dict[str, Any]]]:
        """Blocklist exactly as persisted, for backup or transfer."""
        try:
            return await self.service.matcher.export_blocklist()
        except StoreUnavailable as e:
            raise self._store_unavailable("export blocklist", e) from e

    async def import_blocklist(self, entries: List[Union[str, Dict[str, Any]]]) -> Dict[str, Any]:
        """Merge an exported blocklist, skipping fingerprints already present."""
        try:
            added = await self.service.matcher.import_blocklist(entries)
        except StoreUnavailable as e:
            raise self._store_unavailable("import blocklist", e) from e
        return {"imported": added, "entries": len(self.service.matcher)}

    async def update_settings(self, request: SettingsRequest) -> Dict[str, Any]:
        try:
            await self.service.set_mute_on_block(request.mute_on_block)
        except StoreUnavailable as e:
            raise self._store_unavailable("update settings", e) from e
        return {"mute_on_block": self.service.mute_on_block}

    async def user_status(self, username: str) -> Dict[str, Any]:
        return {"username": username, "muted": self.service.is_user_muted(username)}
