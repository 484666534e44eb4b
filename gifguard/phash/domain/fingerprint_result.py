from typing import Any, Dict, Optional

from pydantic import BaseModel, model_validator


class FingerprintResult(BaseModel):
    """Outcome of a fingerprint request: exactly one of fingerprint or error is set."""

    fingerprint: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _one_outcome(self) -> "FingerprintResult":
        if (self.fingerprint is None) == (self.error is None):
            raise ValueError("FingerprintResult needs exactly one of fingerprint or error")
        return self

    @classmethod
    def success(cls, fingerprint: str) -> "FingerprintResult":
        return cls(fingerprint=fingerprint)

    @classmethod
    def failure(cls, error: str) -> "FingerprintResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.fingerprint is not None

    def to_message(self) -> Dict[str, Any]:
        """Wire shape for the thumbnail supplier: ``{fingerprint}`` or ``{error}``."""
        return self.model_dump(exclude_none=True)
