"""Unit tests for the compute bridge."""

import asyncio
from unittest.mock import patch

import pytest

from gifguard.phash.const import EMPTY_RESPONSE_REASON, TIMEOUT_REASON
from gifguard.phash.hash_bridge import HashComputeBridge
from gifguard.phash.resource_manager import ComputeResourceManager
from gifguard.shared.exceptions import (
    ErrorCategory,
    MalformedResponse,
    RequestTimeout,
    ResourceCreationFailed,
    TransportFailure,
)
from ..test_const import FP_A, FP_ZERO, TEST_REQUEST_TIMEOUT, TEST_URL, TEST_URL_2, TEST_WORKER_ERROR


@pytest.fixture
def manager(resource_factory):
    return ComputeResourceManager(resource_factory, idle_timeout=5)


@pytest.fixture
def bridge(manager):
    return HashComputeBridge(manager, request_timeout=TEST_REQUEST_TIMEOUT, init_grace=0)


class TestRoundTrip:
    """Test request/response correlation."""

    @pytest.mark.asyncio
    async def test_returns_fingerprint(self, bridge, manager, resource_factory):
        resource_factory.fingerprints[TEST_URL] = FP_ZERO
        assert await bridge.compute_fingerprint(TEST_URL) == FP_ZERO

        request = resource_factory.sent[0]
        assert request["sourceUrl"] == TEST_URL
        assert request["requestId"]
        assert bridge.pending_count == 0
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_out_of_order_replies_are_correlated(self, bridge, manager, resource_factory):
        resource_factory.fingerprints = {TEST_URL: FP_A, TEST_URL_2: FP_ZERO}
        resource_factory.delays[TEST_URL] = 0.05

        first, second = await asyncio.gather(
            bridge.compute_fingerprint(TEST_URL),
            bridge.compute_fingerprint(TEST_URL_2),
        )
        assert first == FP_A
        assert second == FP_ZERO
        assert len(resource_factory.created) == 1
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_request_ids_are_unique(self, bridge, manager, resource_factory):
        await asyncio.gather(*(bridge.compute_fingerprint(f"{TEST_URL}?{i}") for i in range(5)))
        ids = {request["requestId"] for request in resource_factory.sent}
        assert len(ids) == 5
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_notes_activity_before_and_after(self, bridge, manager):
        with patch.object(manager, "note_activity", wraps=manager.note_activity) as note_activity:
            await bridge.compute_fingerprint(TEST_URL)
        assert note_activity.call_count == 2
        await manager.teardown()


class TestInitGrace:
    """Test the grace period before the first request to a new resource."""

    @pytest.mark.asyncio
    async def test_grace_waited_once_per_resource(self, manager, resource_factory):
        bridge = HashComputeBridge(manager, request_timeout=TEST_REQUEST_TIMEOUT, init_grace=0.01)
        await bridge.compute_fingerprint(TEST_URL)
        await bridge.compute_fingerprint(TEST_URL_2)
        assert resource_factory.latest.grace_waits == [0.01]

        await manager.teardown()
        await bridge.compute_fingerprint(TEST_URL)
        assert len(resource_factory.created) == 2
        assert resource_factory.latest.grace_waits == [0.01]
        await manager.teardown()


class TestFailures:
    """Test structured request failures."""

    @pytest.mark.asyncio
    async def test_timeout_then_later_request_succeeds(self, bridge, manager, resource_factory):
        resource_factory.silent_urls.add(TEST_URL)

        with pytest.raises(RequestTimeout) as exc_info:
            await bridge.compute_fingerprint(TEST_URL)
        assert exc_info.value.message == TIMEOUT_REASON
        assert exc_info.value.context.category is ErrorCategory.TIMEOUT

        assert await bridge.compute_fingerprint(TEST_URL_2) == FP_A
        assert len(resource_factory.created) == 1
        assert bridge.failures == 1
        await manager.teardown()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", [["abc"], {"id": 1}, 7, None])
    async def test_reply_with_invalid_request_id_is_dropped(self, bridge, manager, resource_factory, bad_id):
        resource_factory.replies[TEST_URL] = {"requestId": bad_id, "fingerprint": FP_ZERO}

        with pytest.raises(RequestTimeout):
            await bridge.compute_fingerprint(TEST_URL)
        assert await bridge.compute_fingerprint(TEST_URL_2) == FP_A
        assert len(resource_factory.created) == 1
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_late_reply_is_dropped(self, bridge, manager, resource_factory):
        resource_factory.delays[TEST_URL] = TEST_REQUEST_TIMEOUT * 2

        with pytest.raises(RequestTimeout):
            await bridge.compute_fingerprint(TEST_URL)
        await asyncio.sleep(TEST_REQUEST_TIMEOUT * 2)
        assert bridge.pending_count == 0
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_error_reply_surfaces_reason(self, bridge, manager, resource_factory):
        resource_factory.replies[TEST_URL] = {"error": TEST_WORKER_ERROR}
        with pytest.raises(TransportFailure) as exc_info:
            await bridge.compute_fingerprint(TEST_URL)
        assert exc_info.value.message == TEST_WORKER_ERROR
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_reply_without_fingerprint_is_malformed(self, bridge, manager, resource_factory):
        resource_factory.replies[TEST_URL] = {}
        with pytest.raises(MalformedResponse) as exc_info:
            await bridge.compute_fingerprint(TEST_URL)
        assert exc_info.value.message == EMPTY_RESPONSE_REASON
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_empty_fingerprint_is_malformed(self, bridge, manager, resource_factory):
        resource_factory.replies[TEST_URL] = {"fingerprint": ""}
        with pytest.raises(MalformedResponse):
            await bridge.compute_fingerprint(TEST_URL)
        await manager.teardown()

    def test_parse_empty_message(self):
        with pytest.raises(MalformedResponse):
            HashComputeBridge._parse_response(None, "req-1")

    @pytest.mark.asyncio
    async def test_send_failure_is_transport_failure(self, bridge, manager, resource_factory):
        resource_factory.send_error = True
        with pytest.raises(TransportFailure) as exc_info:
            await bridge.compute_fingerprint(TEST_URL)
        assert isinstance(exc_info.value.cause, ConnectionError)
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_resource_closing_fails_pending_requests(self, bridge, manager, resource_factory):
        resource_factory.silent_urls.update({TEST_URL, TEST_URL_2})
        loop = asyncio.get_running_loop()
        loop.call_later(0.02, lambda: resource_factory.latest.crash("worker exited"))

        results = await asyncio.gather(
            bridge.compute_fingerprint(TEST_URL),
            bridge.compute_fingerprint(TEST_URL_2),
            return_exceptions=True,
        )
        assert all(isinstance(result, TransportFailure) for result in results)
        assert all(result.message == "worker exited" for result in results)
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_creation_failure_propagates(self, bridge, resource_factory):
        resource_factory.fail_creates = 1
        with pytest.raises(ResourceCreationFailed):
            await bridge.compute_fingerprint(TEST_URL)
        assert resource_factory.sent == []
