"""Shared test configuration and fixtures for all tests."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from gifguard.phash.infrastructure.store import InMemoryStore
from gifguard.phash.ports.compute_resource import ComputeResource
from gifguard.phash.service import PerceptualHashService
from gifguard.shared.config import Config
from .test_const import CREATE_FAILURE_MESSAGE, FP_A, TEST_DEBOUNCE, TEST_IDLE_TIMEOUT, TEST_REQUEST_TIMEOUT


class FakeComputeResource(ComputeResource):
    """In-process compute resource driven by its factory's settings."""

    def __init__(self, factory: "FakeResourceFactory"):
        super().__init__()
        self.factory = factory
        self.alive = False
        self.close_count = 0
        self.sent: List[Dict[str, Any]] = []
        self.grace_waits: List[float] = []

    async def create(self) -> None:
        if self.factory.create_delay:
            await asyncio.sleep(self.factory.create_delay)
        if self.factory.fail_creates > 0:
            self.factory.fail_creates -= 1
            raise RuntimeError(CREATE_FAILURE_MESSAGE)
        self.alive = True

    async def is_alive(self) -> bool:
        return self.alive

    async def send(self, request: Dict[str, Any]) -> None:
        if not self.alive or self.factory.send_error:
            raise ConnectionError("worker is not running")
        self.sent.append(request)
        url = request["sourceUrl"]
        if url in self.factory.silent_urls:
            return

        reply = dict(self.factory.replies.get(url, {"fingerprint": self.factory.fingerprints.get(url, FP_A)}))
        reply.setdefault("requestId", request["requestId"])
        delay = self.factory.delays.get(url, 0)
        asyncio.get_running_loop().call_later(delay, self._deliver, reply)

    async def close(self) -> None:
        self.alive = False
        self.close_count += 1

    async def wait_ready(self, grace: float) -> None:
        self.grace_waits.append(grace)
        await super().wait_ready(grace)

    def crash(self, reason: str) -> None:
        """Simulate the resource going away on its own."""
        self.alive = False
        self._closed(reason)


class FakeResourceFactory:
    """Callable factory recording every resource it builds."""

    def __init__(self):
        self.created: List[FakeComputeResource] = []
        self.fingerprints: Dict[str, str] = {}
        self.replies: Dict[str, Dict[str, Any]] = {}
        self.delays: Dict[str, float] = {}
        self.silent_urls: set = set()
        self.fail_creates = 0
        self.create_delay = 0.0
        self.send_error = False

    def __call__(self) -> FakeComputeResource:
        resource = FakeComputeResource(self)
        self.created.append(resource)
        return resource

    @property
    def latest(self) -> Optional[FakeComputeResource]:
        return self.created[-1] if self.created else None

    @property
    def sent(self) -> List[Dict[str, Any]]:
        return [request for resource in self.created for request in resource.sent]


@pytest.fixture
def resource_factory():
    """Factory of fake compute resources."""
    return FakeResourceFactory()


@pytest.fixture
def memory_store():
    """Empty in-memory persistent store."""
    return InMemoryStore()


@pytest.fixture
def test_config():
    """Config with short timings for fast tests."""
    return Config(
        request_timeout=TEST_REQUEST_TIMEOUT,
        resource_idle_timeout=TEST_IDLE_TIMEOUT,
        resource_init_grace=0,
        persist_debounce=TEST_DEBOUNCE,
    )


@pytest.fixture
def service(memory_store, resource_factory, test_config):
    """Perceptual hash service over the in-memory store and fake resources."""
    return PerceptualHashService(memory_store, resource_factory, config=test_config)
