from typing import Optional

from pydantic import BaseModel


class BlockDecision(BaseModel):
    """Block verdict for one thumbnail URL. Errors always leave the item unblocked."""

    url: str
    blocked: bool = False
    fingerprint: Optional[str] = None
    distance: Optional[int] = None
    error: Optional[str] = None
