"""Correlated request/response bridge to the compute resource."""

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional, Tuple

from gifguard.const import REQUEST_TIMEOUT, RESOURCE_INIT_GRACE
from gifguard.shared.exceptions import MalformedResponse, RequestTimeout, TransportFailure
from .const import (
    EMPTY_RESPONSE_REASON,
    ERROR_FIELD,
    FINGERPRINT_FIELD,
    REQUEST_ID_FIELD,
    SOURCE_URL_FIELD,
    TIMEOUT_REASON,
)
from .ports.compute_resource import ComputeResource
from .resource_manager import ComputeResourceManager

logger = logging.getLogger(__name__)


class HashComputeBridge:
    """Performs fingerprint round trips against the managed compute resource.

    Each request gets its own correlation id and deadline; replies may arrive
    in any order. A request resolves exactly once: with a fingerprint, or with
    one of ``RequestTimeout``, ``TransportFailure``, ``MalformedResponse``, or
    ``ResourceCreationFailed`` from the manager. There is no retry here.
    """

    def __init__(
        self,
        manager: ComputeResourceManager,
        request_timeout: float = REQUEST_TIMEOUT,
        init_grace: float = RESOURCE_INIT_GRACE,
    ):
        self._manager = manager
        self.request_timeout = request_timeout
        self.init_grace = init_grace
        self._pending: Dict[str, Tuple[asyncio.Future, ComputeResource]] = {}
        self._settled_generation = 0
        self.requests = 0
        self.failures = 0
        manager.on_resource_created(self._attach)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _attach(self, resource: ComputeResource) -> None:
        resource.on_response(self._handle_response)
        resource.on_close(lambda reason: self._fail_pending(resource, reason))

    def _handle_response(self, message: Any) -> None:
        if not isinstance(message, dict):
            logger.warning(f"Uncorrelatable message from compute resource: {message!r}")
            return
        request_id = message.get(REQUEST_ID_FIELD)
        if not isinstance(request_id, str):
            logger.warning(f"Dropping response with invalid request id: {request_id!r}")
            return
        entry = self._pending.get(request_id)
        if entry is None or entry[0].done():
            logger.debug(f"Dropping late or unknown response for request {request_id}")
            return
        entry[0].set_result(message)

    def _fail_pending(self, resource: ComputeResource, reason: str) -> None:
        for request_id, (future, owner) in list(self._pending.items()):
            if owner is resource and not future.done():
                future.set_exception(TransportFailure(reason, request_id=request_id))

    async def compute_fingerprint(self, source_url: str) -> str:
        """Fingerprint ``source_url`` on the compute resource."""
        self._manager.note_activity()
        self.requests += 1
        try:
            resource = await self._manager.ensure_ready()
            await self._settle(resource)
            return await self._round_trip(resource, source_url)
        except Exception:
            self.failures += 1
            raise
        finally:
            self._manager.note_activity()

    async def _settle(self, resource: ComputeResource) -> None:
        """Give a freshly created resource its init grace period before the first send."""
        generation = self._manager.generation
        if generation == self._settled_generation:
            return
        await resource.wait_ready(self.init_grace)
        self._settled_generation = generation

    async def _round_trip(self, resource: ComputeResource, source_url: str) -> str:
        request_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = (future, resource)
        try:
            logger.debug(f"Sending request {request_id} for {source_url}")
            try:
                await resource.send({REQUEST_ID_FIELD: request_id, SOURCE_URL_FIELD: source_url})
            except OSError as e:
                raise TransportFailure(
                    f"Compute resource unreachable: {e}", request_id=request_id, cause=e
                ) from e

            try:
                message = await asyncio.wait_for(future, timeout=self.request_timeout)
            except asyncio.TimeoutError as e:
                logger.warning(f"Request {request_id} for {source_url} timed out after {self.request_timeout}s")
                raise RequestTimeout(TIMEOUT_REASON, request_id=request_id, timeout=self.request_timeout) from e
        finally:
            self._pending.pop(request_id, None)

        return self._parse_response(message, request_id)

    @staticmethod
    def _parse_response(message: Optional[Dict[str, Any]], request_id: str) -> str:
        if not message:
            raise MalformedResponse(EMPTY_RESPONSE_REASON, request_id=request_id)

        error = message.get(ERROR_FIELD)
        if error:
            raise TransportFailure(str(error), request_id=request_id)

        fingerprint = message.get(FINGERPRINT_FIELD)
        if not isinstance(fingerprint, str) or not fingerprint:
            raise MalformedResponse(EMPTY_RESPONSE_REASON, request_id=request_id)
        return fingerprint
