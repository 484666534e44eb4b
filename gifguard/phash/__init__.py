"""Perceptual hash matching: fingerprint cache, compute bridge and blocklist matcher."""

from .fingerprint_cache import FingerprintCache
from .resource_manager import ComputeResourceManager, ComputeResourceState
from .hash_bridge import HashComputeBridge
from .matcher import BlockDecisionMatcher
from .service import PerceptualHashService

__all__ = [
    "FingerprintCache",
    "ComputeResourceManager",
    "ComputeResourceState",
    "HashComputeBridge",
    "BlockDecisionMatcher",
    "PerceptualHashService",
]
