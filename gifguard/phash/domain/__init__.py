"""Domain entities for perceptual hash matching."""

from .blocked_item import BlockedItem
from .block_decision import BlockDecision
from .fingerprint_result import FingerprintResult

__all__ = ["BlockedItem", "BlockDecision", "FingerprintResult"]
