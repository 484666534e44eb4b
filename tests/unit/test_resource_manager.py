"""Unit tests for the compute resource lifecycle."""

import asyncio

import pytest

from gifguard.phash.resource_manager import ComputeResourceManager, ComputeResourceState
from gifguard.shared.exceptions import ErrorCategory, ResourceCreationFailed
from ..test_const import CREATE_FAILURE_MESSAGE


class TestEnsureReady:
    """Test lazy creation of the compute resource."""

    @pytest.mark.asyncio
    async def test_creates_on_first_use(self, resource_factory):
        manager = ComputeResourceManager(resource_factory)
        assert manager.state is ComputeResourceState.ABSENT

        resource = await manager.ensure_ready()
        assert resource is resource_factory.latest
        assert manager.state is ComputeResourceState.READY
        assert manager.generation == 1
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_reuses_live_resource(self, resource_factory):
        manager = ComputeResourceManager(resource_factory)
        first = await manager.ensure_ready()
        second = await manager.ensure_ready()
        assert first is second
        assert manager.creation_count == 1
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_creation(self, resource_factory):
        resource_factory.create_delay = 0.05
        manager = ComputeResourceManager(resource_factory)

        first = asyncio.create_task(manager.ensure_ready())
        await asyncio.sleep(0)
        assert manager.state is ComputeResourceState.CREATING
        others = [asyncio.create_task(manager.ensure_ready()) for _ in range(9)]
        results = await asyncio.gather(first, *others)

        assert len(resource_factory.created) == 1
        assert all(resource is results[0] for resource in results)
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_failure(self, resource_factory):
        resource_factory.create_delay = 0.02
        resource_factory.fail_creates = 1
        manager = ComputeResourceManager(resource_factory)

        results = await asyncio.gather(*(manager.ensure_ready() for _ in range(3)), return_exceptions=True)
        assert all(isinstance(result, ResourceCreationFailed) for result in results)
        assert len(resource_factory.created) == 1

    @pytest.mark.asyncio
    async def test_failed_creation_resets_and_retries(self, resource_factory):
        resource_factory.fail_creates = 2
        manager = ComputeResourceManager(resource_factory)

        for attempt in (1, 2):
            with pytest.raises(ResourceCreationFailed) as exc_info:
                await manager.ensure_ready()
            assert manager.state is ComputeResourceState.ABSENT
            assert manager.creation_count == attempt
            assert CREATE_FAILURE_MESSAGE in exc_info.value.message
            assert exc_info.value.context.category is ErrorCategory.RESOURCE

        resource = await manager.ensure_ready()
        assert manager.state is ComputeResourceState.READY
        assert manager.creation_count == 3
        assert resource.alive
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_failed_creation_closes_partial_resource(self, resource_factory):
        resource_factory.fail_creates = 1
        manager = ComputeResourceManager(resource_factory)
        with pytest.raises(ResourceCreationFailed):
            await manager.ensure_ready()
        assert resource_factory.latest.close_count == 1

    @pytest.mark.asyncio
    async def test_factory_error_resets_and_retries(self, resource_factory):
        calls = []

        def flaky_factory():
            calls.append(1)
            if len(calls) == 1:
                raise OSError("cannot spawn worker")
            return resource_factory()

        manager = ComputeResourceManager(flaky_factory)
        with pytest.raises(ResourceCreationFailed) as exc_info:
            await manager.ensure_ready()
        assert isinstance(exc_info.value.cause, OSError)
        assert manager.state is ComputeResourceState.ABSENT

        resource = await manager.ensure_ready()
        assert resource.alive
        assert len(calls) == 2
        assert manager.state is ComputeResourceState.READY
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_listener_error_closes_resource_and_retries(self, resource_factory):
        manager = ComputeResourceManager(resource_factory)
        failures = [RuntimeError("listener failed")]

        def listener(resource):
            if failures:
                raise failures.pop()

        manager.on_resource_created(listener)
        with pytest.raises(ResourceCreationFailed):
            await manager.ensure_ready()
        assert manager.state is ComputeResourceState.ABSENT
        assert resource_factory.created[0].close_count == 1

        resource = await manager.ensure_ready()
        assert resource is resource_factory.created[1]
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_recreates_after_external_close(self, resource_factory):
        manager = ComputeResourceManager(resource_factory)
        first = await manager.ensure_ready()
        first.alive = False

        second = await manager.ensure_ready()
        assert second is not first
        assert first.close_count == 1
        assert manager.generation == 2
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_listeners_see_each_new_resource(self, resource_factory):
        seen = []
        manager = ComputeResourceManager(resource_factory)
        manager.on_resource_created(seen.append)
        await manager.ensure_ready()
        assert seen == resource_factory.created
        await manager.teardown()


class TestTeardown:
    """Test idle expiry and explicit teardown."""

    @pytest.mark.asyncio
    async def test_teardown_when_absent_is_noop(self, resource_factory):
        manager = ComputeResourceManager(resource_factory)
        await manager.teardown()
        assert manager.state is ComputeResourceState.ABSENT
        assert resource_factory.created == []

    @pytest.mark.asyncio
    async def test_teardown_closes_resource(self, resource_factory):
        manager = ComputeResourceManager(resource_factory)
        resource = await manager.ensure_ready()
        await manager.teardown()
        assert manager.state is ComputeResourceState.ABSENT
        assert manager.resource is None
        assert resource.close_count == 1

    @pytest.mark.asyncio
    async def test_idle_timeout_tears_down(self, resource_factory):
        manager = ComputeResourceManager(resource_factory, idle_timeout=0.05)
        resource = await manager.ensure_ready()
        manager.note_activity()

        await asyncio.sleep(0.15)
        assert manager.state is ComputeResourceState.ABSENT
        assert not resource.alive

    @pytest.mark.asyncio
    async def test_activity_postpones_idle_teardown(self, resource_factory):
        manager = ComputeResourceManager(resource_factory, idle_timeout=0.1)
        await manager.ensure_ready()
        for _ in range(4):
            manager.note_activity()
            await asyncio.sleep(0.05)
        assert manager.state is ComputeResourceState.READY
        await manager.teardown()

    @pytest.mark.asyncio
    async def test_teardown_waits_for_inflight_creation(self, resource_factory):
        resource_factory.create_delay = 0.05
        manager = ComputeResourceManager(resource_factory)

        creating = asyncio.create_task(manager.ensure_ready())
        await asyncio.sleep(0)
        await manager.teardown()

        resource = await creating
        assert manager.state is ComputeResourceState.ABSENT
        assert resource.close_count == 1
        assert len(resource_factory.created) == 1

    @pytest.mark.asyncio
    async def test_teardown_after_failed_inflight_creation(self, resource_factory):
        resource_factory.create_delay = 0.02
        resource_factory.fail_creates = 1
        manager = ComputeResourceManager(resource_factory)

        creating = asyncio.create_task(manager.ensure_ready())
        await asyncio.sleep(0)
        await manager.teardown()

        with pytest.raises(ResourceCreationFailed):
            await creating
        assert manager.state is ComputeResourceState.ABSENT
