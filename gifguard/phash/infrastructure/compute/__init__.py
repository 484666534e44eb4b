"""Compute resource adapters."""

from .subprocess_resource import SubprocessComputeResource

__all__ = ["SubprocessComputeResource"]
