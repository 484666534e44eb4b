"""Port interface for the isolated fingerprint compute resource."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

ResponseHandler = Callable[[Dict[str, Any]], None]
CloseHandler = Callable[[str], None]


class ComputeResource(ABC):
    """An isolated execution context that turns thumbnails into fingerprints.

    The resource is reachable only through messages. Requests are
    ``{"requestId", "sourceUrl"}``; replies are delivered asynchronously to the
    registered response handler as ``{"requestId", "fingerprint"}`` or
    ``{"requestId", "error"}``, in any order.
    """

    def __init__(self):
        self._response_handler: Optional[ResponseHandler] = None
        self._close_handler: Optional[CloseHandler] = None

    def on_response(self, handler: ResponseHandler) -> None:
        """Register the callback receiving every reply from the resource."""
        self._response_handler = handler

    def on_close(self, handler: CloseHandler) -> None:
        """Register the callback invoked with a reason when the resource goes away."""
        self._close_handler = handler

    def _deliver(self, message: Dict[str, Any]) -> None:
        if self._response_handler is not None:
            self._response_handler(message)

    def _closed(self, reason: str) -> None:
        if self._close_handler is not None:
            self._close_handler(reason)

    @abstractmethod
    async def create(self) -> None:
        """Start the resource. Raises on failure."""
        pass

    @abstractmethod
    async def is_alive(self) -> bool:
        """Return True if the resource is still running."""
        pass

    @abstractmethod
    async def send(self, request: Dict[str, Any]) -> None:
        """Send one request message. Raises if the resource is unreachable."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Stop the resource. Safe to call more than once."""
        pass

    async def wait_ready(self, grace: float) -> None:
        """Give a freshly created resource time to start listening.

        Messages sent immediately after creation may be lost, so the default
        simply waits out the grace period.
        """
        await asyncio.sleep(grace)
