"""Lifecycle management for the single lazily created compute resource."""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional

from gifguard.const import RESOURCE_IDLE_TIMEOUT
from gifguard.shared.exceptions import ResourceCreationFailed
from .ports.compute_resource import ComputeResource

logger = logging.getLogger(__name__)

ResourceFactory = Callable[[], ComputeResource]
ResourceListener = Callable[[ComputeResource], None]


class ComputeResourceState(Enum):
    """Compute resource lifecycle states."""
    ABSENT = "absent"
    CREATING = "creating"
    READY = "ready"


class ComputeResourceManager:
    """Owns at most one compute resource, created on first use and released when idle.

    Concurrent ``ensure_ready`` calls during creation all await the same
    creation task, so a resource is never created twice. A failed creation
    resets the state to ABSENT and the next call starts a fresh attempt.
    """

    def __init__(self, resource_factory: ResourceFactory, idle_timeout: float = RESOURCE_IDLE_TIMEOUT):
        """Initialize the manager.

        Args:
            resource_factory: Builds a new, not yet created, ComputeResource
            idle_timeout: Seconds without activity before the resource is torn down
        """
        self._factory = resource_factory
        self.idle_timeout = idle_timeout
        self._state = ComputeResourceState.ABSENT
        self._resource: Optional[ComputeResource] = None
        self._creating: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._idle_handle: Optional[asyncio.TimerHandle] = None
        self._idle_task: Optional[asyncio.Task] = None
        self._listeners: List[ResourceListener] = []
        self.creation_count = 0
        self.generation = 0

    @property
    def state(self) -> ComputeResourceState:
        return self._state

    @property
    def resource(self) -> Optional[ComputeResource]:
        return self._resource

    def on_resource_created(self, listener: ResourceListener) -> None:
        """Register a callback run on each new resource before it is started."""
        self._listeners.append(listener)

    async def ensure_ready(self) -> ComputeResource:
        """Return a live resource, creating it if needed.

        Raises:
            ResourceCreationFailed: If the creation attempt this call joined failed.
        """
        async with self._lock:
            if self._state is ComputeResourceState.READY and self._resource is not None:
                if await self._resource.is_alive():
                    return self._resource
                logger.warning("Compute resource was closed externally; recreating it")
                await self._discard_resource()

            if self._creating is None:
                self._state = ComputeResourceState.CREATING
                self._creating = asyncio.create_task(self._create())
            creation = self._creating

        return await asyncio.shield(creation)

    async def _create(self) -> ComputeResource:
        resource: Optional[ComputeResource] = None
        try:
            self.creation_count += 1
            logger.info(f"Creating compute resource (attempt {self.creation_count})")
            resource = self._factory()
            for listener in self._listeners:
                listener(resource)
            await resource.create()
        except Exception as e:
            logger.error(f"Failed to create compute resource: {e}")
            if resource is not None:
                try:
                    await resource.close()
                except Exception as close_error:
                    logger.warning(f"Cleanup after failed creation also failed: {close_error}")
            raise ResourceCreationFailed(f"Failed to create compute resource: {e}", cause=e) from e
        else:
            self._resource = resource
            self.generation += 1
            self._state = ComputeResourceState.READY
            logger.info(f"Compute resource ready (generation {self.generation})")
            return resource
        finally:
            # Failure or cancellation must leave room for a fresh attempt
            self._creating = None
            if self._state is ComputeResourceState.CREATING:
                self._state = ComputeResourceState.ABSENT

    def note_activity(self) -> None:
        """Restart the idle timer."""
        self._cancel_idle_timer()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self.idle_timeout, self._on_idle)

    def _on_idle(self) -> None:
        self._idle_handle = None
        logger.info(f"Compute resource idle for {self.idle_timeout}s; tearing down")
        self._idle_task = asyncio.create_task(self._teardown())

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    async def teardown(self) -> None:
        """Close the resource. No-op when nothing is running."""
        self._cancel_idle_timer()
        await self._teardown()

    async def _teardown(self) -> None:
        async with self._lock:
            # Never destroy a resource that is still being built
            if self._creating is not None:
                try:
                    await asyncio.shield(self._creating)
                except ResourceCreationFailed:
                    logger.debug("In-flight creation failed; nothing to tear down")
            await self._discard_resource()

    async def _discard_resource(self) -> None:
        resource = self._resource
        self._resource = None
        self._state = ComputeResourceState.ABSENT
        if resource is None:
            return
        try:
            await resource.close()
        except Exception as e:
            logger.warning(f"Error while closing compute resource: {e}")
